"""Prompts shown before anything is sent to the network. Answering "n" aborts the run."""

import sys
from typing import Any, Mapping, Sequence

from ape.utils import ZERO_ADDRESS


def _ask(question: str) -> None:
    answer = input(f"{question} Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        sys.exit(-1)


def _continue() -> None:
    _ask("Continue")


def _confirm_resolution(named_args: Mapping[str, Any], contract_name: str) -> None:
    """Shows the initializer arguments a contract will be deployed with."""
    if named_args:
        print(f"\nInitializer arguments for {contract_name}")
        for name, value in named_args.items():
            print(f"\t{name}={value}")
    else:
        print(f"\n(i) {contract_name} is initialized without arguments")

    zero_args = [name for name, value in named_args.items() if value == ZERO_ADDRESS]
    if zero_args:
        print(f"(!) Zero address passed as {', '.join(zero_args)}")
    _ask(f"Deploy {contract_name}")


def _confirm_upgrade(proxy_address: str, contract_name: str) -> None:
    _ask(f"Upgrade proxy {proxy_address} to a new {contract_name}")


def _confirm_plan(decisions: Sequence) -> None:
    print("\nDeployment plan")
    for decision in decisions:
        print(f"\t{decision.unit.name}: {decision.action.value}")
    _continue()
