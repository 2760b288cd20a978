from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Mapping, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress

from vibe_deployment.constants import DEFAULT_INITIALIZER
from vibe_deployment.errors import DeploymentConfigError

UnitName = str
ResolvedAddresses = Mapping[UnitName, ChecksumAddress]
InitArgsBuilder = Callable[[ResolvedAddresses], Sequence[Any]]


class ImplementationArtifact(NamedTuple):
    """The implementation contract a unit declares, identified by its bytecode hash."""

    contract_name: str
    bytecode_hash: str


def no_init_args(resolved: ResolvedAddresses) -> Sequence[Any]:
    return ()


@dataclass(frozen=True)
class DeploymentUnit:
    """
    Declarative description of one upgradeable module.

    `build_init_args` receives the proxy addresses of the unit's dependencies
    (and only those) and returns the initializer arguments, in order.
    """

    name: UnitName
    implementation: ImplementationArtifact
    dependencies: FrozenSet[UnitName] = frozenset()
    build_init_args: InitArgsBuilder = no_init_args
    initializer: str = DEFAULT_INITIALIZER
    tags: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        if not self.name:
            raise DeploymentConfigError("Deployment unit name cannot be empty.")
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))
        if self.name in self.dependencies:
            raise DeploymentConfigError(f"Deployment unit '{self.name}' cannot depend on itself.")
        # a unit can always be selected by its own name
        tags = (self.name,) + tuple(tag for tag in self.tags if tag != self.name)
        object.__setattr__(self, "tags", tags)


class AddressRecord(NamedTuple):
    """Last known on-chain state of a deployment unit."""

    unit_name: UnitName
    proxy_address: ChecksumAddress
    implementation_hash: str
    initialized: bool
    deployed_at_block: int
    implementation_address: Optional[ChecksumAddress] = None
    dependencies: Tuple[UnitName, ...] = ()
    init_args: Tuple[Any, ...] = ()


class DeploymentResult(NamedTuple):
    proxy_address: ChecksumAddress
    implementation_hash: str
    block_number: int
    implementation_address: Optional[ChecksumAddress] = None


class UpgradeResult(NamedTuple):
    implementation_hash: str
    block_number: int
    implementation_address: Optional[ChecksumAddress] = None
