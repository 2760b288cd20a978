from collections import OrderedDict
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress

from vibe_deployment.errors import (
    DependencyChanged,
    DependencyNotReady,
    ExecutionError,
    UnitFailed,
)
from vibe_deployment.executor import ChainExecutor
from vibe_deployment.registry import AddressRegistry
from vibe_deployment.resolver import DependencyResolver
from vibe_deployment.units import AddressRecord, DeploymentUnit, UnitName


class Action(Enum):
    REUSE = "reuse"
    UPGRADE = "upgrade"
    FRESH_DEPLOY = "fresh-deploy"


class Decision(NamedTuple):
    unit: DeploymentUnit
    action: Action
    record: Optional[AddressRecord] = None


class Outcome(Enum):
    REUSED = "reused"
    DEPLOYED = "deployed"
    UPGRADED = "upgraded"
    FAILED = "failed"


class UnitReport(NamedTuple):
    name: UnitName
    outcome: Outcome
    address: Optional[ChecksumAddress] = None


def decide(unit: DeploymentUnit, record: Optional[AddressRecord]) -> Decision:
    """Chooses what to do with a unit given its registry record, if any."""
    if record is None:
        return Decision(unit=unit, action=Action.FRESH_DEPLOY)
    if record.implementation_hash != unit.implementation.bytecode_hash:
        return Decision(unit=unit, action=Action.UPGRADE, record=record)
    return Decision(unit=unit, action=Action.REUSE, record=record)


class DeploymentOrchestrator:
    """
    Deploys, upgrades or reuses units in dependency order, one at a time,
    committing each unit to the registry before moving to the next.
    """

    def __init__(
        self,
        registry: AddressRegistry,
        executor: ChainExecutor,
        resolver: Optional[DependencyResolver] = None,
    ):
        self.registry = registry
        self.executor = executor
        self.resolver = resolver or DependencyResolver()
        self.reports: List[UnitReport] = list()
        self.cancelled = False

    def plan(
        self, units: Sequence[DeploymentUnit], tags: Optional[Iterable[str]] = None
    ) -> List[Decision]:
        """Validates the configuration against the registry and returns per-unit decisions."""
        order = self.resolver.resolve(units, tags=tags)
        decisions = list()
        for unit in order:
            record = self.registry.get(unit.name)
            if record is not None and set(record.dependencies) != set(unit.dependencies):
                raise DependencyChanged(unit.name, record.dependencies, unit.dependencies)
            decisions.append(decide(unit, record))
        return decisions

    def run(
        self,
        units: Sequence[DeploymentUnit],
        tags: Optional[Iterable[str]] = None,
        cancel=None,
    ) -> Dict[UnitName, AddressRecord]:
        """
        Runs the deployment. `cancel` may be any object with an `is_set()`
        method (e.g. `threading.Event`); it is checked between units only.
        """
        self.reports = list()
        self.cancelled = False
        results = OrderedDict()
        with self.registry.lock():
            self.registry.load()
            decisions = self.plan(units, tags=tags)
            for decision in decisions:
                if cancel is not None and cancel.is_set():
                    print(f"\n(i) Deployment cancelled before {decision.unit.name}.")
                    self.cancelled = True
                    break
                results[decision.unit.name] = self._execute(decision)
        return results

    def _execute(self, decision: Decision) -> AddressRecord:
        unit = decision.unit
        try:
            if decision.action == Action.REUSE:
                record = self._reuse(decision)
                outcome = Outcome.REUSED
            elif decision.action == Action.UPGRADE:
                record = self._upgrade(decision)
                outcome = Outcome.UPGRADED
            else:
                record = self._fresh_deploy(unit)
                outcome = Outcome.DEPLOYED
        except ExecutionError as error:
            error.unit_name = unit.name
            self._abort(unit, error.message)
            raise
        except DependencyNotReady as error:
            self._abort(unit, error)
            raise
        except Exception as error:
            self._abort(unit, error)
            raise UnitFailed(unit.name, error) from error

        self.reports.append(
            UnitReport(name=unit.name, outcome=outcome, address=record.proxy_address)
        )
        return record

    def _abort(self, unit: DeploymentUnit, reason) -> None:
        self.reports.append(UnitReport(name=unit.name, outcome=Outcome.FAILED))
        print(f"\n(!) {unit.name} failed: {reason}")
        print("Aborting deployment; already committed units are kept in the registry.")

    def _reuse(self, decision: Decision) -> AddressRecord:
        unit, record = decision.unit, decision.record
        if not record.initialized:
            # proxy creation runs the initializer, so a recorded proxy is initialized
            self.registry.mark_initialized(unit.name)
            self.registry.commit()
            record = self.registry.get(unit.name)
        print(f"(i) Reusing {unit.name} at {record.proxy_address}")
        return record

    def _upgrade(self, decision: Decision) -> AddressRecord:
        unit, record = decision.unit, decision.record
        print(
            f"\nUpgrading {unit.name} at {record.proxy_address} to "
            f"{unit.implementation.contract_name} ({unit.implementation.bytecode_hash[:10]})"
        )
        result = self.executor.upgrade_implementation(record.proxy_address, unit.implementation)
        self.registry.put(
            unit.name,
            record._replace(
                implementation_hash=result.implementation_hash,
                implementation_address=result.implementation_address,
                deployed_at_block=result.block_number,
            ),
        )
        self.registry.commit()
        upgraded = self.registry.get(unit.name)
        print(f"(i) {unit.name} upgraded at block {upgraded.deployed_at_block}")
        return upgraded

    def _resolve_dependencies(self, unit: DeploymentUnit) -> Dict[UnitName, ChecksumAddress]:
        resolved = dict()
        for dependency in sorted(unit.dependencies):
            record = self.registry.get(dependency)
            if record is None or not record.initialized:
                raise DependencyNotReady(unit.name, dependency)
            resolved[dependency] = record.proxy_address
        return resolved

    def _fresh_deploy(self, unit: DeploymentUnit) -> AddressRecord:
        resolved = self._resolve_dependencies(unit)
        init_args = tuple(unit.build_init_args(resolved))
        print(f"\nDeploying {unit.name} ({unit.implementation.contract_name}) behind proxy")

        result = self.executor.deploy_behind_proxy(unit.implementation, init_args, unit.initializer)
        record = AddressRecord(
            unit_name=unit.name,
            proxy_address=result.proxy_address,
            implementation_hash=result.implementation_hash,
            initialized=False,
            deployed_at_block=result.block_number,
            implementation_address=result.implementation_address,
            dependencies=tuple(sorted(unit.dependencies)),
            init_args=init_args,
        )
        self.registry.put(unit.name, record)
        self.registry.mark_initialized(unit.name)
        self.registry.commit()
        print(f"(i) {unit.name} deployed at {result.proxy_address}")
        return self.registry.get(unit.name)


def run(
    units: Sequence[DeploymentUnit],
    registry: AddressRegistry,
    executor: ChainExecutor,
    tags: Optional[Iterable[str]] = None,
    cancel=None,
) -> Dict[UnitName, AddressRecord]:
    orchestrator = DeploymentOrchestrator(registry=registry, executor=executor)
    return orchestrator.run(units, tags=tags, cancel=cancel)


def print_report(reports: List[UnitReport]) -> None:
    print("\nDeployment summary")
    if not reports:
        print("\t(no units attempted)")
    for report in reports:
        address = report.address or "-"
        print(f"\t{report.name}: {report.outcome.value} {address}")
