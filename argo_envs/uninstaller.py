"""Library for removing an environment from the repository and the cluster.

Removing the last environment that uses the shared controller installation
also tears down the root Application. The order of operations is what keeps
this safe:

1. The change removing the environment's applications is pushed first.
2. The root Application must report it is synced to exactly that commit
   before it is deleted, so the controller is not deleting resources while
   still reconciling against an older desired state.
3. After the delete the Application must be confirmed gone, not just absent
   from the last observation, before the repository is cleaned up.
"""

from dataclasses import dataclass, field
import logging

from .app_tree import project_path, remove_root_app_files, root_app
from .cluster import ApplicationDeleted, ApplicationSynced, ClusterHandle
from .config import Config
from .context import trace_context
from .git_repo import GitRepository
from .manifest import Application
from .waiter import WaitConfig, wait_for

__all__ = [
    "UninstallState",
    "delete_environment",
    "uninstall",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_APP_NAMESPACE = "argocd"
DEFAULT_WAIT_INTERVAL_SECONDS = 2.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 120.0


@dataclass
class UninstallState:
    """State threaded through the steps of a single uninstall run."""

    repo: GitRepository
    """The working tree of the GitOps repository."""

    config: Config
    """The environment registry of the working tree."""

    env_name: str
    """The environment being removed."""

    should_clean: bool
    """True when the shared controller resources must be torn down as well."""

    dry_run: bool = False
    """When set nothing is pushed and cluster operations are not performed."""

    wait: WaitConfig = field(
        default_factory=lambda: WaitConfig(
            DEFAULT_WAIT_INTERVAL_SECONDS, DEFAULT_WAIT_TIMEOUT_SECONDS
        )
    )
    """Polling configuration for cluster waits."""

    revision: str | None = None
    """The sha of the last commit made by this run."""


async def delete_environment(config: Config, name: str) -> None:
    """Remove an environment from the registry and persist it."""
    await config.delete_environment(name)
    _LOGGER.info("Removed environment %s from %s", name, config.config_file)


def persist_repo(state: UninstallState, message: str) -> None:
    """Commit all working tree changes and push them unless in dry run mode."""
    state.repo.add(".")
    state.revision = state.repo.commit(message)
    if state.dry_run:
        return
    _LOGGER.info("Pushing to gitops repo...")
    state.repo.push()


async def await_sync(state: UninstallState, cluster: ClusterHandle, app: Application) -> None:
    """Wait until the controller has reconciled the Application at the last commit."""
    if state.revision is None:
        raise ValueError("No commit recorded to wait for")
    _LOGGER.info("Waiting for root application sync... (might take a few seconds)")
    await wait_for(
        cluster,
        [
            ApplicationSynced(
                name=app.name,
                namespace=app.namespace or DEFAULT_APP_NAMESPACE,
                revision=state.revision,
            )
        ],
        interval=state.wait.interval,
        timeout=state.wait.timeout,
        dry_run=state.dry_run,
    )


async def delete_root_app(state: UninstallState, cluster: ClusterHandle, app: Application) -> None:
    """Delete the Application and its project from the cluster and wait until gone."""
    manifests = [app.manifest_path.read_text()]
    if (project := project_path(app)).exists():
        manifests.insert(0, project.read_text())
    _LOGGER.info("Deleting root application %s", app.namespaced_name)
    await cluster.delete("\n---\n".join(manifests), dry_run=state.dry_run)
    await wait_for(
        cluster,
        [ApplicationDeleted(name=app.name, namespace=app.namespace or DEFAULT_APP_NAMESPACE)],
        interval=state.wait.interval,
        timeout=state.wait.timeout,
        dry_run=state.dry_run,
    )


async def uninstall(state: UninstallState, cluster: ClusterHandle) -> None:
    """Push the environment removal and, if required, tear down its root Application.

    The working tree is expected to already hold the removal of the
    environment's applications (see `app_tree.prune_managed_apps`).
    """
    config = state.config
    env = config.get_environment(state.env_name)
    with trace_context(f"Uninstall environment '{state.env_name}'"):
        root = await root_app(config, env)
        persist_repo(state, f"uninstalled environment {state.env_name}")

        if not state.should_clean:
            _LOGGER.info(
                "All managed resources in '%s' have been removed, argo-cd and user Applications remain on cluster",
                state.env_name,
            )
            return

        with trace_context("Await sync"):
            await await_sync(state, cluster, root)
        with trace_context("Delete root application"):
            await delete_root_app(state, cluster, root)
        with trace_context("Clean repository"):
            await remove_root_app_files(config, env)
            await delete_environment(config, state.env_name)
            persist_repo(state, f"cleanup {state.env_name} resources")

    _LOGGER.info(
        "All managed resources in '%s' have been removed, including argo-cd",
        state.env_name,
    )
