import json
from pathlib import Path
from typing import Dict, Optional

import yaml

from vibe_deployment.constants import ARTIFACTS_DIR
from vibe_deployment.errors import DeploymentConfigError


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry artifact file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise DeploymentConfigError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(
    config: Dict, network_chain_id: Optional[int] = None, live_deployment: bool = True
) -> Path:
    """
    Checks the params file structure and that it targets the connected chain.
    Returns the registry filepath.
    """
    print("Validating parameters YAML...")

    if not isinstance(config, dict):
        raise DeploymentConfigError("Malformed parameters YAML.")

    deployment = config.get("deployment")
    if not deployment:
        raise DeploymentConfigError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise DeploymentConfigError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise DeploymentConfigError("Parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    chain_mismatch = network_chain_id is not None and config_chain_id != network_chain_id
    if chain_mismatch and live_deployment:
        raise DeploymentConfigError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({network_chain_id})."
        )

    return get_artifact_filepath(config=config)
