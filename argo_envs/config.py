"""Environment registry stored at the root of a GitOps working tree.

The registry records every environment installed into the repository and the
location of its root Application manifest:

```yaml
version: "1.0"
environments:
  prod:
    rootAppPath: argocd-apps/prod.yaml
    templateRef: https://github.com/example/template@v1.0.0
```
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any

import aiofiles
import yaml
from mashumaro import field_options
from mashumaro.exceptions import InvalidFieldValue, MissingField

from .exceptions import (
    ConfigNotFound,
    EnvironmentAlreadyExists,
    EnvironmentNotExist,
    InputException,
)
from .manifest import BaseManifest

__all__ = [
    "Config",
    "Environment",
    "load_config",
    "new_config",
    "CONFIG_FILE_NAME",
]

_LOGGER = logging.getLogger(__name__)

CONFIG_FILE_NAME = "argo-envs.yaml"
CONFIG_VERSION = "1.0"
BOOTSTRAP_DIR = "bootstrap"


@dataclass
class Environment(BaseManifest):
    """An environment installed into the repository.

    The environment name is the key in `Config.environments` and is not
    duplicated here.
    """

    root_app_path: str = field(metadata=field_options(alias="rootAppPath"))
    """Repo relative path to the root Application manifest."""

    template_ref: str | None = field(
        metadata=field_options(alias="templateRef"), default=None
    )
    """The template repository url and ref the environment was created from."""

    def bootstrap_url(self) -> str:
        """Return the kustomize url of the template bootstrap directory."""
        template_ref = self.template_ref or ""
        ref: str | None = None
        if "#" in template_ref:
            template_ref, ref = template_ref.split("#", 1)
        elif "@" in template_ref:
            template_ref, ref = template_ref.split("@", 1)
        url = f"{template_ref}/{BOOTSTRAP_DIR}"
        if ref:
            return f"{url}?ref={ref}"
        return url


@dataclass
class Config(BaseManifest):
    """The environment registry of a working tree."""

    version: str = CONFIG_VERSION
    """Registry format version."""

    environments: dict[str, Environment] = field(default_factory=dict)
    """Installed environments keyed by name, in registration order."""

    root_path: Path = field(metadata={"serialize": "omit"}, default=Path("."))
    """The working tree the registry was loaded from."""

    @property
    def config_file(self) -> Path:
        """Absolute path of the registry file."""
        return self.root_path / CONFIG_FILE_NAME

    def first_env(self) -> Environment | None:
        """Return the first registered environment, if any."""
        for env in self.environments.values():
            return env
        return None

    def get_environment(self, name: str) -> Environment:
        """Return the named environment or raise `EnvironmentNotExist`."""
        if (env := self.environments.get(name)) is None:
            raise EnvironmentNotExist(name)
        return env

    async def persist(self) -> None:
        """Write the registry to the working tree, replacing any existing file."""
        content = self.yaml()
        async with aiofiles.open(str(self.config_file), mode="w") as config_file:
            await config_file.write(content)
        _LOGGER.debug("Persisted %s environments to %s", len(self.environments), self.config_file)

    async def add_environment(self, name: str, env: Environment) -> None:
        """Register a new environment and persist the registry."""
        if name in self.environments:
            raise EnvironmentAlreadyExists(name)
        self.environments[name] = env
        await self.persist()

    async def delete_environment(self, name: str) -> None:
        """Remove an environment from the registry and persist the registry."""
        if name not in self.environments:
            raise EnvironmentNotExist(name)
        del self.environments[name]
        await self.persist()


def new_config(path: Path) -> Config:
    """Return an empty registry bound to the working tree at `path`."""
    return Config(root_path=path)


def _parse_config(doc: Any, config_path: Path) -> Config:
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise InputException(f"Invalid config file {config_path}: expected a mapping")
    if doc.get("environments") is None:
        doc["environments"] = {}
    # An unquoted `version: 1.0` is read back as a float
    if isinstance(version := doc.get("version"), (int, float)):
        doc["version"] = str(version)
    try:
        config = Config.from_dict(doc)
    except (MissingField, InvalidFieldValue, ValueError, TypeError) as err:
        raise InputException(f"Invalid config file {config_path}: {err}") from err
    if config.version != CONFIG_VERSION:
        raise InputException(
            f"Unsupported config version '{config.version}' in {config_path}"
        )
    return config


async def load_config(path: Path) -> Config:
    """Load the environment registry from the working tree at `path`."""
    config_path = path / CONFIG_FILE_NAME
    try:
        async with aiofiles.open(str(config_path)) as config_file:
            content = await config_file.read()
    except FileNotFoundError as err:
        raise ConfigNotFound(str(config_path)) from err
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse config file {config_path}: {err}") from err
    config = _parse_config(doc, config_path)
    config.root_path = path
    _LOGGER.debug("Loaded %s environments from %s", len(config.environments), config_path)
    return config
