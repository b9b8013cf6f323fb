# /volume_swapper/core/config_validator.py
# Run at startup, before any chain activity, to validate connection parameters.
from web3 import Web3

from volume_swapper.core.config import settings, Settings
from volume_swapper.core.logger import log

REQUIRED_VARS = ['RPC_URL', 'PRIVATE_KEY', 'ROUTER_ADDRESS', 'USDT_ADDRESS', 'ETH_ADDRESS', 'BTC_ADDRESS']
ADDRESS_VARS = ['ROUTER_ADDRESS', 'USDT_ADDRESS', 'ETH_ADDRESS', 'BTC_ADDRESS']


def validate(cfg: Settings = settings):
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    for var in REQUIRED_VARS:
        if not getattr(cfg, var, None):
            errors.append(f"Missing required configuration: {var}")

    for var in ADDRESS_VARS:
        value = getattr(cfg, var, None)
        if value and not Web3.is_address(value):
            errors.append(f"Malformed address in configuration: {var}={value}")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")


if __name__ == "__main__":
    validate()
