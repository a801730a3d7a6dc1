"""Exceptions related to argo-envs."""

__all__ = [
    "ArgoEnvsException",
    "InputException",
    "ConfigNotFound",
    "EnvironmentAlreadyExists",
    "EnvironmentNotExist",
    "AppNotFound",
    "ObjectNotFoundError",
    "WaitTimeoutError",
    "GitException",
]


class ArgoEnvsException(Exception):
    """Generic base exception used for this library."""


class InputException(ArgoEnvsException):
    """Raised when the input files or values are not formatted as expected."""


class ConfigNotFound(ArgoEnvsException):
    """Raised when a working tree has no environment registry file."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No prior installation found, config file does not exist: {path}")
        self.path = path


class EnvironmentAlreadyExists(ArgoEnvsException):
    """Raised when adding an environment name that is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Environment already exists: {name}")
        self.name = name


class EnvironmentNotExist(ArgoEnvsException):
    """Raised when an environment name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Environment does not exist: {name}")
        self.name = name


class AppNotFound(ArgoEnvsException):
    """Raised when no managed Application carries the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"App not found: {name}")
        self.name = name


class ObjectNotFoundError(ArgoEnvsException):
    """Raised when an object is not found (or is gone) in the cluster."""


class WaitTimeoutError(ArgoEnvsException):
    """Raised when resources did not become ready before the wait timeout."""

    def __init__(self, pending: list[str], timeout: float) -> None:
        super().__init__(
            f"Timed out after {timeout:0.1f}s waiting for resources: {', '.join(pending)}"
        )
        self.pending = pending
        self.timeout = timeout


class GitException(ArgoEnvsException):
    """Raised when there is a failure running a git operation."""
