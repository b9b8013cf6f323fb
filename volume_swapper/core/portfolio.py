# /volume_swapper/core/portfolio.py
from typing import Dict, List

from volume_swapper.core.logger import get_logger
from volume_swapper.core.models import TokenDescriptor, format_units
from volume_swapper.core.tx import ChainError

log = get_logger(__name__)

NATIVE_DECIMALS = 18


class BalanceReporter:
    """Logs a balance snapshot of the wallet: native asset plus each campaign token."""
    def __init__(self, chain, tokens: List[TokenDescriptor], network_name: str):
        self.chain = chain
        self.tokens = tokens
        self.network_name = network_name

    async def report(self) -> Dict[str, str] | None:
        """Returns the formatted snapshot, or None when a read failed (logged, not raised)."""
        snapshot: Dict[str, str] = {}
        try:
            native = await self.chain.native_balance()
            snapshot["NATIVE"] = format_units(native, NATIVE_DECIMALS)
            log.info("NATIVE_BALANCE", network=self.network_name, balance=snapshot["NATIVE"])
            for token in self.tokens:
                balance = await self.chain.token_balance(token.address)
                decimals = await self.chain.token_decimals(token.address)
                snapshot[token.symbol] = format_units(balance, decimals)
                log.info("TOKEN_BALANCE", token=token.symbol, balance=snapshot[token.symbol])
        except ChainError as e:
            log.warning("BALANCE_FETCH_FAILED", error=str(e))
            return None
        return snapshot
