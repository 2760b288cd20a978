#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from vibe_deployment.ape_executor import ApeChainExecutor, artifact_from_project
from vibe_deployment.confirm import _confirm_plan
from vibe_deployment.constants import LOCAL_NETWORKS
from vibe_deployment.options import (
    autosign_option,
    dry_run_option,
    params_filepath_option,
    tag_option,
)
from vibe_deployment.orchestrator import DeploymentOrchestrator, print_report
from vibe_deployment.params import DeploymentParameters
from vibe_deployment.registry import JSONAddressRegistry
from vibe_deployment.utils import _load_yaml, validate_config


def _print_deployment_info(account, params_filepath, registry_filepath, chain_id):
    print(
        f"Account: {account.address}",
        f"Config: {params_filepath}",
        f"Registry: {registry_filepath}",
        f"Ecosystem: {networks.provider.network.ecosystem.name}",
        f"Network: {networks.provider.network.name}",
        f"Chain ID: {chain_id}",
        f"Gas Price: {networks.provider.gas_price}",
        sep="\n",
    )


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@params_filepath_option
@tag_option
@autosign_option
@dry_run_option
def cli(network, account, params_filepath, tags, autosign, dry_run):
    """Deploy, upgrade or reuse the upgradeable units declared in a params file."""
    config = _load_yaml(params_filepath)
    live_deployment = networks.provider.network.name not in LOCAL_NETWORKS
    registry_filepath = validate_config(
        config=config,
        network_chain_id=networks.provider.chain_id,
        live_deployment=live_deployment,
    )
    chain_id = int(config["deployment"]["chain_id"])

    executor = ApeChainExecutor(
        account=account,
        autosign=autosign,
        named_accounts=config.get("accounts"),
    )
    parameters = DeploymentParameters(
        config=config,
        get_artifact=artifact_from_project,
        resolve_account=executor.resolve_account,
    )
    registry = JSONAddressRegistry(filepath=registry_filepath, chain_id=chain_id)
    orchestrator = DeploymentOrchestrator(registry=registry, executor=executor)

    _print_deployment_info(account, params_filepath, registry_filepath, chain_id)

    registry.load()
    decisions = orchestrator.plan(parameters.units, tags=tags or None)
    if dry_run:
        print("\nDeployment plan")
        for decision in decisions:
            print(f"\t{decision.unit.name}: {decision.action.value}")
        return

    if not autosign:
        _confirm_plan(decisions)

    try:
        orchestrator.run(parameters.units, tags=tags or None)
    finally:
        print_report(orchestrator.reports)
    print(f"(i) Registry written to {registry_filepath}!")


if __name__ == "__main__":
    cli()
