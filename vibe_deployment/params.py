import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from eth_typing import ChecksumAddress

from vibe_deployment.constants import DEFAULT_INITIALIZER, DEPLOYER_ROLE
from vibe_deployment.errors import DeploymentConfigError
from vibe_deployment.units import DeploymentUnit, ImplementationArtifact, ResolvedAddresses
from vibe_deployment.utils import _load_yaml

CONTRACT_TYPE_KEY = "contract_type"
INITIALIZER_KEY = "initializer"
DEPENDENCIES_KEY = "dependencies"
TAGS_KEY = "tags"
CONTRACT_KEYS = {CONTRACT_TYPE_KEY, INITIALIZER_KEY, DEPENDENCIES_KEY, TAGS_KEY}

AccountResolver = Callable[[str], ChecksumAddress]
ArtifactLoader = Callable[[str], ImplementationArtifact]


class VariableContext:
    def __init__(self, contract_name: str, constants: typing.Dict[str, Any] = None):
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, resolved: ResolvedAddresses, resolve_account: AccountResolver) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class NamedAccount(Variable):
    DEPLOYER_INDICATOR = DEPLOYER_ROLE
    ACCOUNT_PREFIX = "account:"

    def __init__(self, role: str):
        if not role:
            raise DeploymentConfigError("Named account variable is missing a role.")
        self.role = role

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is the special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    @classmethod
    def is_named_account(cls, value: str) -> bool:
        return value.startswith(cls.ACCOUNT_PREFIX)

    def resolve(self, resolved: ResolvedAddresses, resolve_account: AccountResolver) -> Any:
        return resolve_account(self.role)


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(
                f"Constant '{constant_name}' not found in deployment file "
                f"(used by {context.contract_name})."
            )

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, resolved: ResolvedAddresses, resolve_account: AccountResolver) -> Any:
        return self.constant_value


class ContractName(Variable):
    """The proxy address of another unit; makes that unit a dependency."""

    def __init__(self, contract_name: str):
        self.contract_name = contract_name

    def resolve(self, resolved: ResolvedAddresses, resolve_account: AccountResolver) -> Any:
        return resolved[self.contract_name]


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if NamedAccount.is_deployer(variable):
        return NamedAccount(DEPLOYER_ROLE)
    elif NamedAccount.is_named_account(variable):
        return NamedAccount(variable[len(NamedAccount.ACCOUNT_PREFIX) :])
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _resolve_param(
    value: Any, resolved: ResolvedAddresses, resolve_account: AccountResolver
) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, resolved, resolve_account) for v in value]

    if isinstance(value, Variable):
        return value.resolve(resolved, resolve_account)

    return value  # literally a value


def _contract_dependencies(value: Any) -> typing.Set[str]:
    if isinstance(value, list):
        return set().union(*(_contract_dependencies(v) for v in value))
    if isinstance(value, ContractName):
        return {value.contract_name}
    return set()


def build_init_args(
    processed_args: List[Any], resolve_account: AccountResolver, resolved: ResolvedAddresses
) -> List[Any]:
    """Resolves the processed initializer arguments of one unit, in order."""
    return [_resolve_param(value, resolved, resolve_account) for value in processed_args]


def _get_contract_entries(config: typing.Dict) -> "OrderedDict[str, Dict]":
    entries = OrderedDict()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            name, contract_data = contract_info, dict()
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            name = list(contract_info.keys())[0]  # only one entry
            contract_data = contract_info[name] or dict()
        else:
            raise DeploymentConfigError("Malformed contracts YAML.")

        if not isinstance(contract_data, dict):
            raise DeploymentConfigError(f"Malformed parameters for {name}.")
        unexpected = set(contract_data) - CONTRACT_KEYS
        if unexpected:
            raise DeploymentConfigError(
                f"Unexpected parameter(s) for {name}: {', '.join(sorted(unexpected))}"
            )
        if name in entries:
            raise DeploymentConfigError(f"Contract {name} is declared more than once.")
        entries[name] = contract_data

    return entries


class DeploymentParameters:
    """Represents the deployment units declared in a parameters file."""

    def __init__(
        self,
        config: typing.Dict,
        get_artifact: ArtifactLoader,
        resolve_account: AccountResolver,
    ):
        if not isinstance(config, dict) or not config.get("contracts"):
            raise DeploymentConfigError("Parameters file missing 'contracts' field.")
        self.config = config
        self.constants = config.get("constants") or dict()
        self.named_accounts = config.get("accounts") or dict()
        self.units = self._build_units(get_artifact, resolve_account)

    @classmethod
    def from_yaml(
        cls, filepath: Path, get_artifact: ArtifactLoader, resolve_account: AccountResolver
    ) -> "DeploymentParameters":
        config = _load_yaml(filepath)
        return cls(config=config, get_artifact=get_artifact, resolve_account=resolve_account)

    def _build_units(
        self, get_artifact: ArtifactLoader, resolve_account: AccountResolver
    ) -> List[DeploymentUnit]:
        print("Processing deployment units...")
        units = list()
        for name, contract_data in _get_contract_entries(self.config).items():
            units.append(self._build_unit(name, contract_data, get_artifact, resolve_account))
        return units

    def _build_unit(
        self,
        name: str,
        contract_data: Dict,
        get_artifact: ArtifactLoader,
        resolve_account: AccountResolver,
    ) -> DeploymentUnit:
        context = VariableContext(contract_name=name, constants=self.constants)
        initializer_data = contract_data.get(INITIALIZER_KEY) or dict()
        method = initializer_data.get("method", DEFAULT_INITIALIZER)
        raw_args = initializer_data.get("args") or list()
        if isinstance(raw_args, dict):
            raw_args = list(raw_args.values())
        processed_args = [_process_raw_value(value, context) for value in raw_args]

        dependencies = set(contract_data.get(DEPENDENCIES_KEY) or [])
        for value in processed_args:
            dependencies |= _contract_dependencies(value)

        contract_type = contract_data.get(CONTRACT_TYPE_KEY, name)
        return DeploymentUnit(
            name=name,
            implementation=get_artifact(contract_type),
            dependencies=frozenset(dependencies),
            build_init_args=partial(build_init_args, processed_args, resolve_account),
            initializer=method,
            tags=tuple(contract_data.get(TAGS_KEY) or ()),
        )

    def get_unit(self, name: str) -> Optional[DeploymentUnit]:
        for unit in self.units:
            if unit.name == name:
                return unit
        return None
