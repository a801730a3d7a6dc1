"""Tests for the uninstaller library."""

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from argo_envs import app_tree
from argo_envs.cluster import ClusterHandle
from argo_envs.config import load_config
from argo_envs.exceptions import (
    EnvironmentNotExist,
    ObjectNotFoundError,
    WaitTimeoutError,
)
from argo_envs.git_repo import GitRepository
from argo_envs.uninstaller import UninstallState, delete_environment, uninstall
from argo_envs.waiter import WaitConfig

FAST_WAIT = WaitConfig(interval=0.01, timeout=0.5)


class FakeCluster(ClusterHandle):
    """A cluster holding a single root Application that records every call."""

    def __init__(self, events: list[str], revision: str = "abc123") -> None:
        self.events = events
        self.revision = revision
        self.deleted: list[str] = []
        self._exists = True

    async def get_deployment(self, namespace: str, name: str) -> dict[str, Any]:
        raise ObjectNotFoundError(f"{namespace}/{name}")

    async def get_application(self, namespace: str, name: str) -> dict[str, Any]:
        if not self._exists:
            self.events.append("gone")
            raise ObjectNotFoundError(f"{namespace}/{name}")
        self.events.append("synced")
        return {"status": {"sync": {"status": "Synced", "revision": self.revision}}}

    async def delete(self, manifests: str, dry_run: bool = False) -> None:
        self.events.append("delete")
        self.deleted.append(manifests)
        self._exists = False


@pytest.fixture(name="events")
def mock_events() -> list[str]:
    """Ordered record of repository and cluster operations."""
    return []


@pytest.fixture(name="repo")
def mock_repo(events: list[str]) -> MagicMock:
    """A git repository recording commits and pushes."""
    repo = MagicMock(spec=GitRepository)
    repo.commit.side_effect = lambda message: events.append(f"commit {message}") or "abc123"
    repo.push.side_effect = lambda: events.append("push")
    return repo


async def test_delete_environment(gitops_path: Path) -> None:
    """Test removing an environment from the registry."""
    config = await load_config(gitops_path)
    await delete_environment(config, "staging")
    assert (await load_config(gitops_path)).environments == {}

    with pytest.raises(EnvironmentNotExist):
        await delete_environment(config, "staging")


async def test_uninstall_with_clean(
    template_path: Path, repo: MagicMock, events: list[str]
) -> None:
    """Test tearing down the root application of the last environment."""
    config = await load_config(template_path)
    assert await app_tree.prune_managed_apps(config, config.get_environment("prod"))
    cluster = FakeCluster(events)
    state = UninstallState(
        repo=repo, config=config, env_name="prod", should_clean=True, wait=FAST_WAIT
    )

    await uninstall(state, cluster)

    assert events == [
        "commit uninstalled environment prod",
        "push",
        "synced",
        "delete",
        "gone",
        "commit cleanup prod resources",
        "push",
    ]
    assert state.revision == "abc123"

    # The project and the root application are deleted together
    assert len(cluster.deleted) == 1
    assert "kind: AppProject" in cluster.deleted[0]
    assert "name: prod" in cluster.deleted[0]

    apps_dir = template_path / "argocd-apps"
    assert not (apps_dir / "prod").exists()
    assert not (apps_dir / "prod.yaml").exists()
    assert not (apps_dir / "prod-project.yaml").exists()
    assert (await load_config(template_path)).environments == {}


async def test_uninstall_without_clean(
    gitops_path: Path, repo: MagicMock, events: list[str]
) -> None:
    """Test an environment with unmanaged applications left behind."""
    config = await load_config(gitops_path)
    assert not await app_tree.prune_managed_apps(config, config.get_environment("staging"))
    cluster = FakeCluster(events)
    state = UninstallState(
        repo=repo, config=config, env_name="staging", should_clean=False, wait=FAST_WAIT
    )

    await uninstall(state, cluster)

    assert events == ["commit uninstalled environment staging", "push"]
    repo.add.assert_called_once_with(".")
    assert cluster.deleted == []
    assert (gitops_path / "argocd-apps/staging.yaml").exists()
    assert "staging" in (await load_config(gitops_path)).environments


async def test_uninstall_dry_run(
    template_path: Path, repo: MagicMock, events: list[str]
) -> None:
    """Test a dry run does not push or observe the cluster."""
    config = await load_config(template_path)
    cluster = AsyncMock(spec=ClusterHandle)
    state = UninstallState(
        repo=repo,
        config=config,
        env_name="prod",
        should_clean=True,
        dry_run=True,
        wait=FAST_WAIT,
    )

    await uninstall(state, cluster)

    assert events == [
        "commit uninstalled environment prod",
        "commit cleanup prod resources",
    ]
    repo.push.assert_not_called()
    cluster.get_application.assert_not_awaited()
    cluster.delete.assert_awaited_once()
    assert cluster.delete.await_args.kwargs == {"dry_run": True}
    assert not (template_path / "argocd-apps/prod.yaml").exists()


async def test_uninstall_sync_timeout(
    template_path: Path, repo: MagicMock, events: list[str]
) -> None:
    """Test the root application is not deleted before it syncs the removal."""
    config = await load_config(template_path)
    cluster = FakeCluster(events, revision="old-revision")
    state = UninstallState(
        repo=repo, config=config, env_name="prod", should_clean=True, wait=FAST_WAIT
    )

    with pytest.raises(WaitTimeoutError, match="argocd/prod"):
        await uninstall(state, cluster)

    assert "delete" not in events
    assert cluster.deleted == []
    assert (template_path / "argocd-apps/prod.yaml").exists()
    assert "prod" in (await load_config(template_path)).environments


async def test_uninstall_missing_environment(
    template_path: Path, repo: MagicMock
) -> None:
    """Test uninstalling an environment that is not registered."""
    config = await load_config(template_path)
    state = UninstallState(repo=repo, config=config, env_name="qa", should_clean=True)
    with pytest.raises(EnvironmentNotExist, match="qa"):
        await uninstall(state, AsyncMock(spec=ClusterHandle))
    repo.commit.assert_not_called()
