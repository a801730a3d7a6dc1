"""Library for merging a new environment into an existing GitOps repository.

The new environment is materialized from a template into its own working tree,
which holds a registry with the environment and its Application tree. Each
leaf Application of that tree is merged into the destination repository:

- An application that already exists in another environment gets a new
  overlay next to the existing ones, `overlays/<env>` in the folder above
  its base location, and the leaf manifest is rewritten to sync that overlay.
- A brand new application has its whole folder (base and overlays) copied to
  the same location in the destination.

Finally the template's app-of-apps directory is copied next to the root
Applications of the existing environments and the environment is registered.

The merge is not transactional. A failure part way through leaves the
destination working tree partially modified, and it should be discarded
rather than repaired or retried in place.
"""

import logging
import os
from pathlib import Path

from .app_tree import find_app, leaf_apps, root_app
from .config import Config, Environment
from .context import trace_context
from .exceptions import AppNotFound, EnvironmentAlreadyExists, InputException
from .fs import copy_dir
from .manifest import Application, read_kustomization

__all__ = [
    "install_environment",
    "base_location",
    "overlay_path",
]

_LOGGER = logging.getLogger(__name__)

OVERLAYS_DIR = "overlays"


def _clean(path: str) -> str:
    """Normalize a repo relative path with forward slashes."""
    return Path(os.path.normpath(path)).as_posix()


async def base_location(config: Config, app: Application) -> str:
    """Return the repo relative location of the shared base an Application builds on.

    This is the first resource of the kustomization.yaml in the directory the
    Application syncs, relative to the repository root.
    """
    kustomization = await read_kustomization(config.root_path / app.source_path)
    resources = kustomization.get("resources")
    if not resources or not isinstance(resources, list):
        raise InputException(
            f"Kustomization for application {app.name} has no resources: "
            f"{config.root_path / app.source_path}"
        )
    return _clean(os.path.join(app.source_path, str(resources[0])))


def overlay_path(base: str, env_name: str) -> str:
    """Return the overlay directory for an environment next to a base.

    The overlay is placed in `overlays/<env>` of the folder the base location
    lives in, e.g. `apps/foo/overlays/base` gives `apps/foo/overlays/<env>`.
    """
    return _clean(os.path.join(os.path.dirname(base), "..", OVERLAYS_DIR, env_name))


async def _install_app(
    config: Config, template: Config, env_name: str, app: Application
) -> None:
    try:
        ref = await find_app(config, app.managed_name)
    except AppNotFound:
        await _install_new_app(config, template, app)
        return

    base = await base_location(config, ref)
    dst = overlay_path(base, env_name)
    _LOGGER.info("Adding overlay %s for existing application %s", dst, app.managed_name)
    copy_dir(template.root_path / app.source_path, config.root_path / dst)
    app.set_source_path(dst)
    await app.save()


async def _install_new_app(config: Config, template: Config, app: Application) -> None:
    app_folder = _clean(os.path.join(app.source_path, "..", ".."))
    _LOGGER.info("Adding new application %s in %s", app.managed_name, app_folder)
    copy_dir(template.root_path / app_folder, config.root_path / app_folder)


async def install_environment(config: Config, template: Config, env_name: str) -> Environment:
    """Merge the environment `env_name` of `template` into `config`.

    The template tree is modified as well: merged leaf manifests are rewritten
    to point at their new overlay before being copied.
    """
    if env_name in config.environments:
        raise EnvironmentAlreadyExists(env_name)
    template_env = template.get_environment(env_name)

    with trace_context(f"Install environment '{env_name}'"):
        template_root = await root_app(template, template_env)
        for app in await leaf_apps(template, template_root):
            with trace_context(f"Application '{app.managed_name}'"):
                await _install_app(config, template, env_name, app)

        if (first_env := config.first_env()) is not None:
            dst_root_app_path = first_env.root_app_path
        else:
            dst_root_app_path = template_env.root_app_path
        src = template.root_path / os.path.dirname(template_env.root_app_path)
        dst = config.root_path / os.path.dirname(dst_root_app_path)
        _LOGGER.info("Copying application definitions of %s to %s", env_name, dst)
        copy_dir(src, dst)

        env = Environment(
            root_app_path=_clean(
                os.path.join(
                    os.path.dirname(dst_root_app_path),
                    os.path.basename(template_env.root_app_path),
                )
            ),
            template_ref=template_env.template_ref,
        )
        await config.add_environment(env_name, env)
    return env
