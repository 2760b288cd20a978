from typing import List, Optional


class DeploymentError(Exception):
    """Base class for all deployment orchestration errors."""


class DeploymentConfigError(DeploymentError, ValueError):
    """Raised when the deployment configuration is invalid; no transaction is sent."""


class DuplicateUnit(DeploymentConfigError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Deployment unit '{name}' is declared more than once.")


class UnknownDependency(DeploymentConfigError):
    def __init__(self, name: str, dependent: Optional[str] = None):
        self.name = name
        self.dependent = dependent
        message = f"Unknown dependency '{name}'"
        if dependent:
            message += f" required by '{dependent}'"
        super().__init__(f"{message}.")


class CycleDetected(DeploymentConfigError):
    def __init__(self, members: List[str]):
        self.members = list(members)
        path = " -> ".join(self.members + self.members[:1])
        super().__init__(f"Dependency cycle detected: {path}")


class UnknownTag(DeploymentConfigError):
    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"No deployment unit is tagged '{tag}'.")


class DependencyChanged(DeploymentConfigError):
    """
    Raised when the declared dependencies of an already recorded unit differ
    from the recorded ones. Use a fresh registry to redeploy.
    """

    def __init__(self, name: str, recorded, declared):
        self.name = name
        self.recorded = sorted(recorded)
        self.declared = sorted(declared)
        super().__init__(
            f"Dependencies of '{name}' changed since it was recorded "
            f"(recorded {self.recorded}, declared {self.declared}); "
            "a fresh registry is required."
        )


class DependencyNotReady(DeploymentError):
    """Raised when a unit is about to be deployed before one of its dependencies."""

    def __init__(self, name: str, dependency: str):
        self.name = name
        self.dependency = dependency
        super().__init__(
            f"Cannot deploy '{name}': dependency '{dependency}' has no initialized record."
        )


class UnknownUnit(DeploymentError, KeyError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No registry record for '{name}'.")

    def __str__(self):
        return self.args[0]


class RegistryLocked(DeploymentError):
    """Raised when another run holds the registry lock."""


class ExecutionError(DeploymentError):
    """Raised by a chain executor when a transaction cannot be completed."""

    def __init__(self, message: str, unit_name: Optional[str] = None):
        self.message = message
        self.unit_name = unit_name
        super().__init__(message)

    def __str__(self):
        if self.unit_name:
            return f"[{self.unit_name}] {self.message}"
        return self.message


class ExecutionReverted(ExecutionError):
    """The transaction was mined but reverted, or was rejected by the node."""


class NetworkError(ExecutionError):
    """The provider could not be reached or dropped the request."""


class UnitFailed(DeploymentError):
    """Raised when a unit fails for any reason other than an `ExecutionError`."""

    def __init__(self, unit_name: str, cause: BaseException):
        self.unit_name = unit_name
        self.cause = cause
        super().__init__(f"[{unit_name}] {type(cause).__name__}: {cause}")
