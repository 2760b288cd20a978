import pytest
from eth_utils import keccak, to_checksum_address, to_hex

from vibe_deployment.executor import ChainExecutor
from vibe_deployment.registry import AddressRegistry
from vibe_deployment.units import (
    DeploymentResult,
    DeploymentUnit,
    ImplementationArtifact,
    UpgradeResult,
)

ROYALTY_FEE_BPS = 250


def artifact(contract_name, version=1):
    bytecode_hash = to_hex(keccak(text=f"{contract_name}:v{version}"))
    return ImplementationArtifact(contract_name=contract_name, bytecode_hash=bytecode_hash)


def fake_address(label):
    return to_checksum_address(keccak(text=label)[-20:])


def make_unit(name, dependencies=(), build_init_args=None, version=1, tags=()):
    kwargs = dict(
        name=name,
        implementation=artifact(name, version),
        dependencies=frozenset(dependencies),
        tags=tuple(tags),
    )
    if build_init_args is not None:
        kwargs["build_init_args"] = build_init_args
    return DeploymentUnit(**kwargs)


class FakeChainExecutor(ChainExecutor):
    """Records every call and hands out deterministic addresses and block numbers."""

    def __init__(self):
        self.block_number = 100
        self.deployments = list()
        self.upgrades = list()
        self.failures = dict()
        self.accounts = {"deployer": fake_address("account:deployer")}

    def fail(self, contract_name, error):
        self.failures[contract_name] = error

    def _next_block(self):
        self.block_number += 1
        return self.block_number

    def deploy_behind_proxy(self, implementation, init_args, initializer="initialize"):
        if implementation.contract_name in self.failures:
            raise self.failures[implementation.contract_name]
        self.deployments.append((implementation.contract_name, tuple(init_args), initializer))
        count = len(self.deployments)
        return DeploymentResult(
            proxy_address=fake_address(f"proxy:{implementation.contract_name}:{count}"),
            implementation_hash=implementation.bytecode_hash,
            block_number=self._next_block(),
            implementation_address=fake_address(f"logic:{implementation.bytecode_hash}"),
        )

    def upgrade_implementation(self, proxy_address, implementation):
        if implementation.contract_name in self.failures:
            raise self.failures[implementation.contract_name]
        self.upgrades.append((proxy_address, implementation.contract_name))
        return UpgradeResult(
            implementation_hash=implementation.bytecode_hash,
            block_number=self._next_block(),
            implementation_address=fake_address(f"logic:{implementation.bytecode_hash}"),
        )

    def resolve_account(self, role):
        return self.accounts[role]

    @property
    def transaction_count(self):
        return len(self.deployments) + len(self.upgrades)


# Fixtures
@pytest.fixture
def executor():
    return FakeChainExecutor()


@pytest.fixture
def registry():
    return AddressRegistry()


@pytest.fixture
def royalty_unit():
    return make_unit("RoyaltyModule", build_init_args=lambda resolved: [ROYALTY_FEE_BPS])


@pytest.fixture
def auction_unit():
    return make_unit(
        "AuctionModule",
        dependencies=["RoyaltyModule"],
        build_init_args=lambda resolved: [resolved["RoyaltyModule"]],
    )


@pytest.fixture
def units(royalty_unit, auction_unit):
    return [royalty_unit, auction_unit]
