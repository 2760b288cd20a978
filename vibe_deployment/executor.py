from abc import ABC, abstractmethod
from typing import Any, Sequence

from eth_typing import ChecksumAddress

from vibe_deployment.constants import DEFAULT_INITIALIZER
from vibe_deployment.units import DeploymentResult, ImplementationArtifact, UpgradeResult


class ChainExecutor(ABC):
    """
    The deployment environment as seen by the orchestrator.

    Implementations block until each transaction is confirmed and raise
    `ExecutionReverted` or `NetworkError` when it is not.
    """

    @abstractmethod
    def deploy_behind_proxy(
        self,
        implementation: ImplementationArtifact,
        init_args: Sequence[Any],
        initializer: str = DEFAULT_INITIALIZER,
    ) -> DeploymentResult:
        """
        Deploys the implementation and a proxy pointed at it, running the
        initializer through the proxy. Either all of it happens or none of it.
        """
        raise NotImplementedError

    @abstractmethod
    def upgrade_implementation(
        self, proxy_address: ChecksumAddress, implementation: ImplementationArtifact
    ) -> UpgradeResult:
        """Deploys a new implementation and points the proxy at it without re-initializing."""
        raise NotImplementedError

    @abstractmethod
    def resolve_account(self, role: str) -> ChecksumAddress:
        """Returns the address of a named account, e.g. 'deployer'."""
        raise NotImplementedError
