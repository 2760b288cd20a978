import json
import os
from collections import OrderedDict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from eth_utils import to_checksum_address, to_hex

from vibe_deployment.constants import STANDARD_REGISTRY_JSON_FORMAT
from vibe_deployment.errors import RegistryLocked, UnknownUnit
from vibe_deployment.units import AddressRecord, UnitName
from vibe_deployment.utils import _load_json

ChainId = int


class AddressRegistry:
    """
    Mapping from deployment unit name to its last known AddressRecord.

    This base class keeps records in memory only; `load`, `commit` and `lock`
    are the lifecycle hooks a durable registry overrides.
    """

    def __init__(self, records: Optional[Dict[UnitName, AddressRecord]] = None):
        self._records: Dict[UnitName, AddressRecord] = OrderedDict(records or {})

    def __contains__(self, unit_name: UnitName) -> bool:
        return unit_name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, unit_name: UnitName) -> Optional[AddressRecord]:
        return self._records.get(unit_name)

    def put(self, unit_name: UnitName, record: AddressRecord) -> None:
        """Upserts a record; an initialized unit stays initialized."""
        existing = self._records.get(unit_name)
        if existing is not None and existing.initialized and not record.initialized:
            record = record._replace(initialized=True)
        self._records[unit_name] = record._replace(unit_name=unit_name)

    def mark_initialized(self, unit_name: UnitName) -> None:
        record = self._records.get(unit_name)
        if record is None:
            raise UnknownUnit(unit_name)
        self._records[unit_name] = record._replace(initialized=True)

    def records(self) -> Dict[UnitName, AddressRecord]:
        return OrderedDict(self._records)

    def load(self) -> None:
        pass

    def commit(self) -> None:
        pass

    @contextmanager
    def lock(self) -> Iterator["AddressRegistry"]:
        yield self


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    return value


def _record_to_json(record: AddressRecord) -> Dict[str, Any]:
    return {
        "proxy_address": record.proxy_address,
        "implementation_address": record.implementation_address,
        "implementation_hash": record.implementation_hash,
        "initialized": record.initialized,
        "deployed_at_block": int(record.deployed_at_block),
        "dependencies": sorted(record.dependencies),
        "init_args": _serialize_value(list(record.init_args)),
    }


def _record_from_json(unit_name: UnitName, data: Dict[str, Any]) -> AddressRecord:
    implementation_address = data.get("implementation_address")
    return AddressRecord(
        unit_name=unit_name,
        proxy_address=to_checksum_address(data["proxy_address"]),
        implementation_hash=data["implementation_hash"],
        initialized=bool(data["initialized"]),
        deployed_at_block=int(data["deployed_at_block"]),
        implementation_address=(
            to_checksum_address(implementation_address) if implementation_address else None
        ),
        dependencies=tuple(data.get("dependencies", ())),
        init_args=tuple(data.get("init_args", ())),
    )


class JSONAddressRegistry(AddressRegistry):
    """
    Registry persisted as a human-readable JSON file, keyed by chain id and
    then by unit name. Entries for other chains in the same file are kept.
    """

    def __init__(self, filepath: Path, chain_id: ChainId):
        super().__init__()
        self.filepath = Path(filepath)
        self.chain_id = int(chain_id)
        self.lock_filepath = self.filepath.with_suffix(self.filepath.suffix + ".lock")

    def load(self) -> None:
        self._records = OrderedDict()
        if not self.filepath.exists():
            return
        data = _load_json(self.filepath)
        for unit_name, entry in data.get(str(self.chain_id), {}).items():
            self._records[unit_name] = _record_from_json(unit_name, entry)

    def commit(self) -> None:
        data = dict()
        if self.filepath.exists():
            data = _load_json(self.filepath)
        data[str(self.chain_id)] = {
            name: _record_to_json(record) for name, record in self._records.items()
        }

        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        temp_filepath = self.filepath.with_suffix(".temp.json")
        with open(temp_filepath, "w") as file:
            json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)
            file.write("\n")
        os.replace(temp_filepath, self.filepath)

    @contextmanager
    def lock(self) -> Iterator["JSONAddressRegistry"]:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.lock_filepath, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise RegistryLocked(
                f"Registry {self.filepath} is locked by another run "
                f"(remove {self.lock_filepath} if that run is no longer active)."
            )
        try:
            os.write(fd, str(os.getpid()).encode())
            os.close(fd)
            yield self
        finally:
            self.lock_filepath.unlink()
