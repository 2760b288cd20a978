import pytest

from tests.conftest import FakeChainExecutor, artifact, fake_address
from vibe_deployment.constants import DEPLOYMENT_PARAMS_DIR
from vibe_deployment.errors import DeploymentConfigError, UnknownDependency
from vibe_deployment.orchestrator import run
from vibe_deployment.params import DeploymentParameters
from vibe_deployment.registry import AddressRegistry
from vibe_deployment.resolver import resolve
from vibe_deployment.utils import validate_config

VIBE_PARAMS_FILEPATH = DEPLOYMENT_PARAMS_DIR / "polygon" / "vibe.yml"


def make_config(contracts, constants=None, accounts=None):
    config = {
        "deployment": {"name": "vibe-test", "chain_id": 137},
        "artifacts": {"dir": "./artifacts/", "filename": "vibe-test.json"},
        "contracts": contracts,
    }
    if constants is not None:
        config["constants"] = constants
    if accounts is not None:
        config["accounts"] = accounts
    return config


def load(config, executor=None):
    executor = executor or FakeChainExecutor()
    return DeploymentParameters(
        config=config, get_artifact=artifact, resolve_account=executor.resolve_account
    )


def test_contract_variables_become_dependencies():
    parameters = load(
        make_config(
            [
                "VibeRoyalty",
                {"VibeDutchAuction": {"initializer": {"args": {"_royalty": "$VibeRoyalty"}}}},
            ]
        )
    )
    royalty, auction = parameters.units
    assert royalty.dependencies == frozenset()
    assert auction.dependencies == frozenset({"VibeRoyalty"})
    assert auction.initializer == "initialize"
    assert auction.implementation == artifact("VibeDutchAuction")


def test_init_args_resolve_addresses_constants_and_accounts():
    executor = FakeChainExecutor()
    executor.accounts["treasury"] = fake_address("account:treasury")
    config = make_config(
        [
            "VibeRoyalty",
            {
                "VibeFixedSwap": {
                    "initializer": {
                        "method": "initializeWithFee",
                        "args": {
                            "_royalty": "$VibeRoyalty",
                            "_owner": "$deployer",
                            "_treasury": "$account:treasury",
                            "_fee": "$FEE_BPS",
                            "_routers": ["$VibeRoyalty", 7],
                        },
                    }
                }
            },
        ],
        constants={"FEE_BPS": 250},
    )
    swap = load(config, executor).get_unit("VibeFixedSwap")
    royalty_address = fake_address("proxy:VibeRoyalty")

    args = swap.build_init_args({"VibeRoyalty": royalty_address})

    assert swap.initializer == "initializeWithFee"
    assert args == [
        royalty_address,
        executor.accounts["deployer"],
        fake_address("account:treasury"),
        250,
        [royalty_address, 7],
    ]


def test_explicit_dependencies_contract_type_and_tags():
    config = make_config(
        [
            "VibeRoyalty",
            {
                "VibeAuctionV2": {
                    "contract_type": "VibeDutchAuction",
                    "dependencies": ["VibeRoyalty"],
                    "tags": ["auctions"],
                }
            },
        ]
    )
    unit = load(config).get_unit("VibeAuctionV2")
    assert unit.implementation.contract_name == "VibeDutchAuction"
    assert unit.dependencies == frozenset({"VibeRoyalty"})
    assert unit.tags == ("VibeAuctionV2", "auctions")
    assert unit.build_init_args({"VibeRoyalty": fake_address("royalty")}) == []


def test_unknown_contract_variable_is_reported_by_the_resolver():
    config = make_config([{"AuctionModule": {"initializer": {"args": ["$Nonexistent"]}}}])
    parameters = load(config)
    with pytest.raises(UnknownDependency, match="Nonexistent"):
        resolve(parameters.units)


def test_missing_constant():
    config = make_config([{"VibeRoyalty": {"initializer": {"args": ["$FEE_BPS"]}}}])
    with pytest.raises(DeploymentConfigError, match="FEE_BPS"):
        load(config)


@pytest.mark.parametrize(
    "contracts",
    [
        [["VibeRoyalty"]],
        [{"VibeRoyalty": {}, "VibeFixedSwap": {}}],
        [{"VibeRoyalty": {"constructor": {}}}],
        ["VibeRoyalty", "VibeRoyalty"],
    ],
)
def test_malformed_contracts(contracts):
    with pytest.raises(DeploymentConfigError):
        load(make_config(contracts))


def test_validate_config():
    config = make_config(["VibeRoyalty"])
    filepath = validate_config(config, network_chain_id=137)
    assert filepath.name == "vibe-test.json"

    with pytest.raises(DeploymentConfigError, match="chain_id"):
        validate_config(config, network_chain_id=1)
    # local networks may run any params file
    validate_config(config, network_chain_id=1337, live_deployment=False)

    del config["contracts"]
    with pytest.raises(DeploymentConfigError, match="contracts"):
        validate_config(config)


def test_vibe_params_deploy_royalty_first():
    executor = FakeChainExecutor()
    parameters = DeploymentParameters.from_yaml(
        VIBE_PARAMS_FILEPATH, get_artifact=artifact, resolve_account=executor.resolve_account
    )
    registry = AddressRegistry()

    results = run(parameters.units, registry, executor)

    assert list(results)[0] == "VibeRoyalty"
    assert len(results) == 5
    royalty_address = results["VibeRoyalty"].proxy_address
    for name, record in results.items():
        if name != "VibeRoyalty":
            assert record.init_args == (royalty_address,)


def test_vibe_params_auctions_tag():
    executor = FakeChainExecutor()
    parameters = DeploymentParameters.from_yaml(
        VIBE_PARAMS_FILEPATH, get_artifact=artifact, resolve_account=executor.resolve_account
    )
    order = resolve(parameters.units, tags=["auctions"])
    assert [unit.name for unit in order] == [
        "VibeRoyalty",
        "VibeDutchAuction",
        "VibeNFTEnglishAuction",
    ]


def test_vibe_params_select_unit_by_name():
    executor = FakeChainExecutor()
    parameters = DeploymentParameters.from_yaml(
        VIBE_PARAMS_FILEPATH, get_artifact=artifact, resolve_account=executor.resolve_account
    )
    order = resolve(parameters.units, tags=["VibeDutchAuction"])
    assert [unit.name for unit in order] == ["VibeRoyalty", "VibeDutchAuction"]

    registry = AddressRegistry()
    results = run(parameters.units, registry, executor, tags=["VibeNFTFixedSwap"])
    assert list(results) == ["VibeRoyalty", "VibeNFTFixedSwap"]
