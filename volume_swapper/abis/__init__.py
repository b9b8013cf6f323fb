"""ABI constants for the contracts the swapper talks to."""

from volume_swapper.abis.erc20 import ERC20_ABI
from volume_swapper.abis.uniswap_v3 import SWAP_ROUTER_ABI

__all__ = ["ERC20_ABI", "SWAP_ROUTER_ABI"]
