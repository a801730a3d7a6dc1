"""Cluster collaborator interface and the readiness checks evaluated against it.

The cluster itself is reached through a `ClusterHandle` supplied by the
caller. Each `ReadinessCheck` bundles the identity of a resource together with
everything needed to decide whether it is ready, so the waiter that evaluates
the checks has no knowledge of what readiness means.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Any

from .exceptions import ObjectNotFoundError

__all__ = [
    "ClusterHandle",
    "ReadinessCheck",
    "DeploymentReady",
    "ApplicationSynced",
    "ApplicationDeleted",
]

_LOGGER = logging.getLogger(__name__)

SYNC_STATUS_SYNCED = "Synced"


class ClusterHandle(ABC):
    """Access to the objects of a kubernetes cluster.

    Getters return the raw resource object. A resource that does not exist,
    or no longer exists, raises `ObjectNotFoundError`.
    """

    @abstractmethod
    async def get_deployment(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the Deployment resource."""

    @abstractmethod
    async def get_application(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the Argo CD Application resource."""

    @abstractmethod
    async def delete(self, manifests: str, dry_run: bool = False) -> None:
        """Delete the resources described by the YAML manifests."""


@dataclass(frozen=True)
class ReadinessCheck(ABC):
    """A resource to wait for and the condition that makes it ready."""

    name: str
    """The name of the resource."""

    namespace: str
    """The namespace of the resource."""

    @property
    def namespaced_name(self) -> str:
        """Return the namespace and name concatenated as an id."""
        return f"{self.namespace}/{self.name}"

    @abstractmethod
    async def check(self, cluster: ClusterHandle) -> bool:
        """Return True when the resource is ready.

        An exception means the state could not be determined yet.
        """


@dataclass(frozen=True)
class DeploymentReady(ReadinessCheck):
    """Ready when all desired replicas of a Deployment are ready."""

    async def check(self, cluster: ClusterHandle) -> bool:
        deployment = await cluster.get_deployment(self.namespace, self.name)
        desired = (deployment.get("spec") or {}).get("replicas", 1)
        ready = (deployment.get("status") or {}).get("readyReplicas") or 0
        _LOGGER.debug(
            "Deployment %s has %s/%s ready replicas", self.namespaced_name, ready, desired
        )
        return ready >= desired


@dataclass(frozen=True)
class ApplicationSynced(ReadinessCheck):
    """Ready when an Application reports it is synced to a specific revision."""

    revision: str
    """The commit sha the controller must have reconciled."""

    async def check(self, cluster: ClusterHandle) -> bool:
        app = await cluster.get_application(self.namespace, self.name)
        sync = (app.get("status") or {}).get("sync") or {}
        _LOGGER.debug(
            "Application %s sync status: %s, revision: %s",
            self.namespaced_name,
            sync.get("status"),
            sync.get("revision"),
        )
        return (
            sync.get("status") == SYNC_STATUS_SYNCED
            and sync.get("revision") == self.revision
        )


@dataclass(frozen=True)
class ApplicationDeleted(ReadinessCheck):
    """Ready only once the cluster confirms the Application is gone."""

    async def check(self, cluster: ClusterHandle) -> bool:
        try:
            await cluster.get_application(self.namespace, self.name)
        except ObjectNotFoundError:
            return True
        return False
