"""Library for walking the app-of-apps tree of an environment.

Every Application syncs a directory (`spec.source.path`) of the working tree.
When that directory holds further Application manifests the Application is a
grouping node, otherwise it is a leaf that deploys an actual workload. The tree
is read fresh from disk on every walk.

Only Applications labeled as managed by argo-envs are descended into; trees
owned by anyone else are never parsed below their top manifest or mutated.

Example usage:

```python
from argo_envs import app_tree, config

conf = await config.load_config(Path("/path/to/gitops-repo"))
env = conf.get_environment("prod")
root = await app_tree.root_app(conf, env)
for app in await app_tree.leaf_apps(conf, root):
    print(f"Found leaf application: {app.managed_name} ({app.source_path})")
```
"""

import logging
from pathlib import Path

from aiofiles.ospath import isdir

from .config import Config, Environment
from .exceptions import AppNotFound, InputException
from .fs import remove_dir
from .manifest import Application, read_application

__all__ = [
    "root_app",
    "child_candidates",
    "leaf_apps",
    "find_by_managed_name",
    "find_app",
    "prune_managed_apps",
    "remove_root_app_files",
]

_LOGGER = logging.getLogger(__name__)

MANIFEST_GLOB = "*.yaml"
PLACEHOLDER_FILE = "DUMMY"
PROJECT_FILE_SUFFIX = "-project.yaml"


async def root_app(config: Config, env: Environment) -> Application:
    """Return the root Application of an environment."""
    path = config.root_path / env.root_app_path
    try:
        app = await read_application(path)
    except FileNotFoundError as err:
        raise InputException(f"Root application manifest does not exist: {path}") from err
    if app is None:
        raise InputException(f"Root application file is not an Application manifest: {path}")
    return app


async def child_candidates(config: Config, app: Application) -> list[Application]:
    """Return the Applications defined directly in the directory an Application syncs.

    Files are visited in lexical order of their names. Only the first document
    of each file is considered; files that are not Application manifests are
    skipped.
    """
    apps_dir = config.root_path / app.source_path
    if not await isdir(apps_dir):
        _LOGGER.debug("Application %s source path is not a directory: %s", app.name, apps_dir)
        return []
    children: list[Application] = []
    for filename in sorted(apps_dir.glob(MANIFEST_GLOB)):
        if not filename.is_file():
            continue
        try:
            child = await read_application(filename)
        except InputException as err:
            _LOGGER.warning("File is not an Application manifest %s: %s", filename, err)
            continue
        if child is None:
            _LOGGER.debug("Skipping non-Application manifest %s", filename)
            continue
        children.append(child)
    return children


def _is_ancestor(app: Application, ancestors: set[Path | None]) -> bool:
    if app.path in ancestors:
        _LOGGER.warning(
            "Application %s in %s is already part of this branch, not descending",
            app.name,
            app.path,
        )
        return True
    return False


async def _leaf_apps(
    config: Config, app: Application, ancestors: set[Path | None]
) -> list[Application]:
    children = await child_candidates(config, app)
    if not children:
        if app.is_managed:
            return [app]
        return []
    leaves: list[Application] = []
    for child in children:
        if not child.is_managed or _is_ancestor(child, ancestors):
            continue
        leaves.extend(await _leaf_apps(config, child, ancestors | {child.path}))
    return leaves


async def leaf_apps(config: Config, root: Application) -> list[Application]:
    """Return the leaf Applications of the tree below `root`, depth first."""
    leaves = await _leaf_apps(config, root, {root.path})
    _LOGGER.debug(
        "Found %s leaf applications below %s: %s",
        len(leaves),
        root.name,
        [leaf.name for leaf in leaves],
    )
    return leaves


async def _find(
    config: Config, app: Application, name: str, ancestors: set[Path | None]
) -> Application | None:
    if app.managed_name == name:
        return app
    for child in await child_candidates(config, app):
        if not child.is_managed or _is_ancestor(child, ancestors):
            continue
        if found := await _find(config, child, name, ancestors | {child.path}):
            return found
    return None


async def find_by_managed_name(
    config: Config, root: Application, name: str
) -> Application:
    """Return the managed Application below `root` (inclusive) with the given name."""
    if root.is_managed and (found := await _find(config, root, name, {root.path})):
        return found
    raise AppNotFound(name)


async def find_app(config: Config, name: str) -> Application:
    """Search every registered environment for the managed Application `name`."""
    for env_name, env in config.environments.items():
        root = await root_app(config, env)
        try:
            app = await find_by_managed_name(config, root, name)
        except AppNotFound:
            continue
        _LOGGER.debug("Found application %s in environment %s: %s", name, env_name, app.path)
        return app
    raise AppNotFound(name)


async def _prune(config: Config, app: Application) -> bool:
    children = await child_candidates(config, app)
    removed = 0
    for child in children:
        if not child.is_managed:
            continue
        if await _prune(config, child):
            _LOGGER.debug("Removing application manifest %s", child.manifest_path)
            child.manifest_path.unlink()
            removed += 1
    return removed == len(children)


async def prune_managed_apps(config: Config, env: Environment) -> bool:
    """Remove the managed Application manifests of an environment.

    Returns True when every Application below the root was removed, which
    means nothing else is left running on the environment's controller. The
    root's source directory is then kept with a placeholder file.
    """
    root = await root_app(config, env)
    if not await _prune(config, root):
        _LOGGER.info("Unmanaged applications remain below %s", root.name)
        return False
    placeholder = config.root_path / root.source_path / PLACEHOLDER_FILE
    placeholder.parent.mkdir(parents=True, exist_ok=True)
    placeholder.touch()
    return True


def project_path(app: Application) -> Path:
    """Return the path of the AppProject manifest stored next to an Application."""
    return app.manifest_path.parent / f"{app.name}{PROJECT_FILE_SUFFIX}"


async def remove_root_app_files(config: Config, env: Environment) -> None:
    """Delete the root Application manifest, its project and its source directory."""
    root = await root_app(config, env)
    remove_dir(config.root_path / root.source_path)
    project = project_path(root)
    if project.exists():
        project.unlink()
    else:
        _LOGGER.debug("No project manifest for %s at %s", root.name, project)
    root.manifest_path.unlink()
