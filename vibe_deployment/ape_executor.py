import typing
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from ape import accounts, chain, project
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractTransactionHandler
from ape.exceptions import AccountsError, ProviderError, TransactionError
from ape.utils import EMPTY_BYTES32
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_checksum_address, to_hex
from ethpm_types import MethodABI
from requests.exceptions import ConnectionError as RequestsConnectionError
from web3.auto import w3

from vibe_deployment.confirm import _confirm_resolution, _confirm_upgrade, _continue
from vibe_deployment.constants import (
    DEFAULT_INITIALIZER,
    DEPLOYER_ROLE,
    EIP1967_ADMIN_SLOT,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_ADMIN_NAME,
    PROXY_NAME,
)
from vibe_deployment.errors import (
    DeploymentConfigError,
    ExecutionReverted,
    NetworkError,
)
from vibe_deployment.executor import ChainExecutor
from vibe_deployment.units import DeploymentResult, ImplementationArtifact, UpgradeResult


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def oz_contract_container(contract: str) -> ContractContainer:
    oz_dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    return getattr(oz_dependency, contract)


def artifact_from_container(container: ContractContainer) -> ImplementationArtifact:
    """Identifies an implementation by the keccak256 of its deployment bytecode."""
    bytecode = container.contract_type.get_deployment_bytecode() or b""
    return ImplementationArtifact(
        contract_name=container.contract_type.name,
        bytecode_hash=to_hex(keccak(bytecode)),
    )


def artifact_from_project(contract_name: str) -> ImplementationArtifact:
    return artifact_from_container(get_contract_container(contract_name))


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise DeploymentConfigError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise DeploymentConfigError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


@contextmanager
def _translate_errors():
    """Re-raises ape failures as executor errors."""
    try:
        yield
    except (TransactionError, AccountsError) as error:
        raise ExecutionReverted(str(error)) from error
    except (ProviderError, RequestsConnectionError) as error:
        raise NetworkError(str(error)) from error


class ApeChainExecutor(ChainExecutor):
    """
    Chain executor backed by an ape account and OpenZeppelin transparent proxies.
    """

    def __init__(
        self,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
        named_accounts: Optional[Dict[str, str]] = None,
    ):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self._named_accounts = dict(named_accounts or {})

    def get_account(self) -> AccountAPI:
        """Returns the transacting account."""
        return self._account

    def resolve_account(self, role: str) -> ChecksumAddress:
        if role == DEPLOYER_ROLE:
            return self._account.address
        try:
            alias = self._named_accounts[role]
        except KeyError:
            raise DeploymentConfigError(f"Named account '{role}' is not configured.")
        return accounts.load(alias).address

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        with _translate_errors():
            return method(*args, sender=self._account)

    def _encode_initializer(
        self, container: ContractContainer, initializer: str, init_args: Sequence[Any]
    ) -> Dict[str, Any]:
        method_abis = [abi for abi in container.contract_type.methods if abi.name == initializer]
        if not method_abis and not init_args:
            return {}
        return _validate_method_args(method_abis=method_abis, args=init_args)

    def deploy_behind_proxy(
        self,
        implementation: ImplementationArtifact,
        init_args: Sequence[Any],
        initializer: str = DEFAULT_INITIALIZER,
    ) -> DeploymentResult:
        container = get_contract_container(implementation.contract_name)
        named_args = self._encode_initializer(container, initializer, init_args)
        if not self._autosign:
            _confirm_resolution(named_args, implementation.contract_name)

        proxy_container = oz_contract_container(PROXY_NAME)
        with _translate_errors():
            logic = self._account.deploy(container)
            data = b""
            if hasattr(logic, initializer):
                data = getattr(logic, initializer).encode_input(*init_args)
            print(
                f"\nDeploying {PROXY_NAME} for {implementation.contract_name} "
                f"(logic at {logic.address})."
            )
            proxy = self._account.deploy(
                proxy_container, logic.address, self._account.address, data
            )

        return DeploymentResult(
            proxy_address=to_checksum_address(proxy.address),
            implementation_hash=artifact_from_container(container).bytecode_hash,
            block_number=proxy.receipt.block_number,
            implementation_address=to_checksum_address(logic.address),
        )

    def upgrade_implementation(
        self, proxy_address: ChecksumAddress, implementation: ImplementationArtifact
    ) -> UpgradeResult:
        container = get_contract_container(implementation.contract_name)
        with _translate_errors():
            admin_slot = chain.provider.get_storage_at(
                address=proxy_address, slot=EIP1967_ADMIN_SLOT
            )

        if admin_slot == EMPTY_BYTES32:
            raise DeploymentConfigError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )

        admin_address = to_checksum_address(admin_slot[-20:])
        proxy_admin = oz_contract_container(PROXY_ADMIN_NAME).at(admin_address)
        if not self._autosign:
            _confirm_upgrade(proxy_address, implementation.contract_name)

        with _translate_errors():
            logic = self._account.deploy(container)
        receipt = self.transact(proxy_admin.upgradeAndCall, proxy_address, logic.address, b"")

        return UpgradeResult(
            implementation_hash=artifact_from_container(container).bytecode_hash,
            block_number=receipt.block_number,
            implementation_address=to_checksum_address(logic.address),
        )
