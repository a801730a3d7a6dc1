"""Representation of the Argo CD objects stored in a GitOps repository.

An Application manifest is parsed in two phases: the document `kind` is read
first, and only documents of kind `Application` are decoded into an
`Application`. Anything else is reported as "not an Application" rather than
as an error, since app directories routinely hold other manifests.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, ClassVar

import aiofiles
import yaml
from mashumaro import DataClassDictMixin
from mashumaro.config import BaseConfig

from .exceptions import InputException

__all__ = [
    "Application",
    "read_application",
    "read_kustomization",
    "first_document",
]

_LOGGER = logging.getLogger(__name__)

APPLICATION_KIND = "Application"
KUSTOMIZATION_FILE = "kustomization.yaml"

# Labels used to decide which Applications belong to this tool
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_NAME = "app.kubernetes.io/name"
MANAGED_BY_VALUE = "argo-envs"


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    def compact_dict(self) -> dict[str, Any]:
        """Return a compact dictionary representation of the object."""
        return self.to_dict()

    def yaml(self) -> str:
        """Return a YAML string representation of compact_dict."""
        return yaml.dump(self.compact_dict(), sort_keys=False)

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


def first_document(content: str, path: Path | str) -> Any:
    """Return only the first YAML document of a multi-document stream.

    Later documents are not parsed at all, so they can neither contribute to nor
    break the result.
    """
    try:
        for doc in yaml.safe_load_all(content):
            return doc
    except yaml.YAMLError as err:
        raise InputException(f"Unable to parse YAML file {path}: {err}") from err
    return None


def parse_kind(doc: Any) -> str | None:
    """Return the `kind` discriminator of a raw document, if it has one."""
    if not isinstance(doc, dict):
        return None
    kind = doc.get("kind")
    return kind if isinstance(kind, str) else None


@dataclass
class Application(BaseManifest):
    """A representation of an Argo CD Application read from the working tree."""

    kind: ClassVar[str] = APPLICATION_KIND
    """The kind of the object."""

    name: str
    """The name of the Application."""

    namespace: str | None
    """The namespace of the Application resource."""

    source_path: str
    """The repo relative directory the Application syncs (spec.source.path)."""

    repo_url: str | None = None
    """The repository the Application syncs from (spec.source.repoURL)."""

    labels: dict[str, str] | None = field(metadata={"serialize": "omit"}, default=None)
    """Labels on the Application."""

    path: Path | None = field(metadata={"serialize": "omit"}, default=None)
    """Absolute path of the manifest file this Application was read from."""

    contents: dict[str, Any] | None = field(
        metadata={"serialize": "omit"}, default=None
    )
    """Contents of the raw Application document."""

    @classmethod
    def parse_doc(cls, doc: dict[str, Any], path: Path | None = None) -> "Application":
        """Parse an Application from a kubernetes resource object."""
        where = f" in {path}" if path else ""
        if parse_kind(doc) != APPLICATION_KIND:
            raise InputException(f"Document is not an {APPLICATION_KIND}{where}")
        if not isinstance(metadata := doc.get("metadata"), dict):
            raise InputException(f"Invalid {cls.kind} missing metadata{where}")
        if not isinstance(name := metadata.get("name"), str) or not name:
            raise InputException(f"Invalid {cls.kind} missing metadata.name{where}")
        if not isinstance(labels := metadata.get("labels") or {}, dict):
            raise InputException(
                f"Invalid {cls.kind} {name} metadata.labels is not a mapping{where}"
            )
        if not isinstance(spec := doc.get("spec"), dict):
            raise InputException(f"Invalid {cls.kind} {name} missing spec{where}")
        if not isinstance(source := spec.get("source"), dict):
            raise InputException(f"Invalid {cls.kind} {name} missing spec.source{where}")
        if not isinstance(source_path := source.get("path"), str) or not source_path:
            raise InputException(
                f"Invalid {cls.kind} {name} missing spec.source.path{where}"
            )
        return cls(
            name=name,
            namespace=metadata.get("namespace"),
            source_path=source_path,
            repo_url=source.get("repoURL"),
            labels={str(key): str(value) for key, value in labels.items()},
            path=path,
            contents=doc,
        )

    def label_value(self, label: str) -> str:
        """Return the value of a label, or an empty string when unset."""
        if not self.labels:
            return ""
        return self.labels.get(label, "")

    @property
    def managed_name(self) -> str:
        """The application name this tool tracks the Application by."""
        return self.label_value(LABEL_NAME)

    @property
    def is_managed(self) -> bool:
        """True when this tool owns the Application and may traverse or mutate it."""
        return self.label_value(LABEL_MANAGED_BY) == MANAGED_BY_VALUE

    @property
    def manifest_path(self) -> Path:
        """Return the file this Application was read from."""
        if self.path is None:
            raise InputException(f"{self.kind} {self.name} was not read from a file")
        return self.path

    @property
    def namespaced_name(self) -> str:
        """Return the namespace and name concatenated as an id."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def set_source_path(self, source_path: str) -> None:
        """Update spec.source.path in the extracted values and raw doc contents."""
        self.source_path = source_path
        if self.contents:
            self.contents["spec"]["source"]["path"] = source_path

    async def save(self) -> None:
        """Write the raw Application document back to its manifest file."""
        if self.path is None or self.contents is None:
            raise InputException(f"{self.kind} {self.name} was not read from a file")
        content = yaml.dump(self.contents, sort_keys=False)
        async with aiofiles.open(str(self.path), mode="w") as manifest_file:
            await manifest_file.write(content)
        _LOGGER.debug("Saved %s %s to %s", self.kind, self.name, self.path)


async def read_application(path: Path) -> Application | None:
    """Read the first document of a file as an Application.

    Returns None when the first document is not an Application. Raises
    `InputException` when the file is not valid YAML or the Application is
    missing required fields.
    """
    try:
        async with aiofiles.open(str(path)) as manifest_file:
            content = await manifest_file.read()
    except UnicodeDecodeError as err:
        raise InputException(f"Unable to read YAML file {path}: {err}") from err
    doc = first_document(content, path)
    if parse_kind(doc) != APPLICATION_KIND:
        return None
    return Application.parse_doc(doc, path)


async def read_kustomization(directory: Path) -> dict[str, Any]:
    """Return the contents of the kustomization.yaml in the directory."""
    kustomization_path = directory / KUSTOMIZATION_FILE
    try:
        async with aiofiles.open(str(kustomization_path)) as kustomization_file:
            content = await kustomization_file.read()
    except FileNotFoundError as err:
        raise InputException(
            f"Kustomization file does not exist: {kustomization_path}"
        ) from err
    except UnicodeDecodeError as err:
        raise InputException(
            f"Unable to read kustomization file {kustomization_path}: {err}"
        ) from err
    doc = first_document(content, kustomization_path)
    if not isinstance(doc, dict):
        raise InputException(f"Invalid kustomization file {kustomization_path}")
    return doc
