import heapq
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Set

from vibe_deployment.errors import CycleDetected, DuplicateUnit, UnknownDependency, UnknownTag
from vibe_deployment.units import DeploymentUnit, UnitName


class DependencyResolver:
    """
    Orders deployment units so that every unit comes after its dependencies.

    Among units whose dependencies are all satisfied, the one declared first
    goes first, so the same configuration always yields the same order.
    """

    def resolve(
        self, units: Sequence[DeploymentUnit], tags: Optional[Iterable[str]] = None
    ) -> List[DeploymentUnit]:
        indexed = self._index(units)
        order = self._topological_order(indexed)
        if tags is None:
            return order

        selected = self._select(indexed, tags)
        return [unit for unit in order if unit.name in selected]

    @staticmethod
    def _index(units: Sequence[DeploymentUnit]) -> "OrderedDict[UnitName, DeploymentUnit]":
        indexed = OrderedDict()
        for unit in units:
            if unit.name in indexed:
                raise DuplicateUnit(unit.name)
            indexed[unit.name] = unit

        for unit in indexed.values():
            for dependency in sorted(unit.dependencies):
                if dependency not in indexed:
                    raise UnknownDependency(dependency, dependent=unit.name)
        return indexed

    @staticmethod
    def _topological_order(
        indexed: "OrderedDict[UnitName, DeploymentUnit]",
    ) -> List[DeploymentUnit]:
        position = {name: i for i, name in enumerate(indexed)}
        pending = {name: set(unit.dependencies) for name, unit in indexed.items()}
        dependents: Dict[UnitName, List[UnitName]] = {name: [] for name in indexed}
        for name, unit in indexed.items():
            for dependency in unit.dependencies:
                dependents[dependency].append(name)

        ready = [position[name] for name, deps in pending.items() if not deps]
        heapq.heapify(ready)
        names = list(indexed)

        order = list()
        while ready:
            name = names[heapq.heappop(ready)]
            order.append(indexed[name])
            for dependent in dependents[name]:
                pending[dependent].discard(name)
                if not pending[dependent]:
                    heapq.heappush(ready, position[dependent])

        if len(order) != len(indexed):
            remaining = [name for name in indexed if pending[name]]
            raise CycleDetected(_find_cycle(indexed, remaining))
        return order

    @staticmethod
    def _select(
        indexed: "OrderedDict[UnitName, DeploymentUnit]", tags: Iterable[str]
    ) -> Set[UnitName]:
        selected = set()
        for tag in tags:
            tagged = [name for name, unit in indexed.items() if tag in unit.tags]
            if not tagged:
                raise UnknownTag(tag)
            selected.update(tagged)

        # pull in transitive dependencies
        stack = list(selected)
        while stack:
            name = stack.pop()
            for dependency in indexed[name].dependencies:
                if dependency not in selected:
                    selected.add(dependency)
                    stack.append(dependency)
        return selected


def _find_cycle(indexed, remaining: List[UnitName]) -> List[UnitName]:
    """Walks dependency edges among the unsorted units until a name repeats."""
    remaining_set = set(remaining)
    path: List[UnitName] = list()
    seen: Dict[UnitName, int] = dict()
    current = remaining[0]
    while current not in seen:
        seen[current] = len(path)
        path.append(current)
        # every unsorted unit has at least one unsorted dependency
        current = sorted(d for d in indexed[current].dependencies if d in remaining_set)[0]
    return path[seen[current]:]


def resolve(
    units: Sequence[DeploymentUnit], tags: Optional[Iterable[str]] = None
) -> List[DeploymentUnit]:
    return DependencyResolver().resolve(units, tags=tags)
