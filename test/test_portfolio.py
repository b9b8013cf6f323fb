import pytest

from volume_swapper.adapters.mock import MockChainClient
from volume_swapper.core.models import TokenDescriptor
from volume_swapper.core.portfolio import BalanceReporter

USDT = TokenDescriptor(symbol="USDT", address="0x1111111111111111111111111111111111111111")
WBTC = TokenDescriptor(symbol="BTC", address="0x5555555555555555555555555555555555555555")


@pytest.mark.asyncio
async def test_snapshot_uses_each_token_decimals():
    chain = MockChainClient()
    chain.native = 2 * 10**18
    chain.balances = {USDT.address: 1_250_000, WBTC.address: 5_000_000}
    chain.decimals = {USDT.address: 6, WBTC.address: 8}

    snapshot = await BalanceReporter(chain, [USDT, WBTC], "testnet").report()

    assert snapshot == {"NATIVE": "2.0", "USDT": "1.25", "BTC": "0.05"}


@pytest.mark.asyncio
async def test_read_failure_is_logged_not_raised():
    chain = MockChainClient()
    chain.fail_next("token_balance", ConnectionError("rpc down"))

    assert await BalanceReporter(chain, [USDT], "testnet").report() is None
