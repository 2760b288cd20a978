from pathlib import Path

import vibe_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(vibe_deployment.__file__).parent
DEPLOYMENT_PARAMS_DIR = DEPLOYMENT_DIR / "deployment_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": "), "sort_keys": True}

#
# Networks
#

LOCAL_NETWORKS = ["local", "development"]

#
# Accounts
#

DEPLOYER_ROLE = "deployer"

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"
PROXY_NAME = "TransparentUpgradeableProxy"
PROXY_ADMIN_NAME = "ProxyAdmin"

DEFAULT_INITIALIZER = "initialize"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103
