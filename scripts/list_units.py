#!/usr/bin/python3

from pathlib import Path
from typing import Dict

import click

from vibe_deployment.registry import ChainId, JSONAddressRegistry
from vibe_deployment.units import AddressRecord
from vibe_deployment.utils import _load_json


def _get_records(registry_filepath: Path) -> Dict[ChainId, Dict[str, AddressRecord]]:
    """Loads the records of every chain present in the registry file."""
    records = dict()
    for chain_id in sorted(map(int, _load_json(registry_filepath))):
        registry = JSONAddressRegistry(filepath=registry_filepath, chain_id=chain_id)
        registry.load()
        records[chain_id] = registry.records()
    return records


@click.command(name="list-units")
@click.option(
    "--registry-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Registry filepath",
    required=True,
)
def cli(registry_filepath):
    """List all deployment units recorded in a registry."""
    for chain_id, records in _get_records(registry_filepath).items():
        click.secho(f"\nChain {chain_id}", fg="green")
        for index, record in enumerate(records.values(), start=1):
            state = "initialized" if record.initialized else "uninitialized"
            click.secho(
                f"    {index}. {record.unit_name} {record.proxy_address} "
                f"(block {record.deployed_at_block}, {state})",
                fg="cyan",
            )


if __name__ == "__main__":
    cli()
