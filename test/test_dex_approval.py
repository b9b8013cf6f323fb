# Tests for TokenApprovalController: fast path, exact-amount approvals and
# nonce recovery, all against the in-memory chain client.
import pytest
from eth_account import Account
from web3 import AsyncWeb3, AsyncHTTPProvider

from volume_swapper.adapters.dex import TokenApprovalController, APPROVAL_GAS_LIMIT
from volume_swapper.adapters.mock import MockChainClient
from volume_swapper.core.logger import TX_FAILURES
from volume_swapper.core.tx import ChainClient
from volume_swapper.core.nonce_manager import NonceManager

TOKEN = "0x1111111111111111111111111111111111111111"
ROUTER = "0x2222222222222222222222222222222222222222"
AMOUNT = 50 * 10**18


class AbiCheckingChain(MockChainClient):
    """In-memory node whose contract calls are bound through the real ERC-20 ABI."""
    def __init__(self):
        super().__init__()
        # Never connects: only used to bind arguments against the ABI.
        self.client = ChainClient(AsyncWeb3(AsyncHTTPProvider("http://127.0.0.1:8545")), Account.create(), chain_id=56)

    def token_contract(self, token):
        return self.client.token_contract(token)

    def prepare_call(self, contract, fn_name, *args):
        self.calls.append(("prepare_call", fn_name))
        return self.client.prepare_call(contract, fn_name, *args)


async def make_env(pending_nonce: int = 0):
    chain = MockChainClient(pending_nonce=pending_nonce)
    nonce_manager = NonceManager(chain)
    await nonce_manager.initialize()
    resyncs = []
    original = nonce_manager.resync

    async def counting_resync():
        resyncs.append(nonce_manager.nonce)
        return await original()

    nonce_manager.resync = counting_resync
    return chain, nonce_manager, TokenApprovalController(chain, nonce_manager), resyncs


@pytest.mark.asyncio
async def test_sufficient_allowance_sends_nothing():
    chain, nm, approvals, resyncs = await make_env(pending_nonce=9)
    chain.allowances[(TOKEN, ROUTER)] = AMOUNT * 2

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is True

    assert chain.sent_transactions == []
    assert "send_transaction" not in chain.ops()
    assert nm.next() == 9
    assert resyncs == []


@pytest.mark.asyncio
async def test_equal_allowance_counts_as_sufficient():
    chain, nm, approvals, _ = await make_env()
    chain.allowances[(TOKEN, ROUTER)] = AMOUNT

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is True
    assert chain.sent_transactions == []


@pytest.mark.asyncio
async def test_insufficient_allowance_sends_exactly_one_exact_approval():
    chain, nm, approvals, _ = await make_env(pending_nonce=4)
    chain.allowances[(TOKEN, ROUTER)] = AMOUNT - 1

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is True

    assert len(chain.sent_transactions) == 1
    tx = chain.sent_transactions[0]
    assert tx["fn"] == "approve"
    assert tx["to"] == TOKEN
    # Exactly the swap amount, never an unlimited allowance
    assert tx["args"] == (ROUTER, AMOUNT)
    assert tx["gas"] == APPROVAL_GAS_LIMIT
    assert tx["gasPrice"] == chain.gas
    assert tx["nonce"] == 4
    assert nm.next() == 5
    assert chain.ops()[-2:] == ["send_transaction", "wait_for_receipt"]


@pytest.mark.asyncio
async def test_nonce_conflict_triggers_exactly_one_resync():
    chain, nm, approvals, resyncs = await make_env(pending_nonce=2)
    chain.fail_next("send_transaction", ValueError("nonce too low: next nonce 3, tx nonce 2"))
    chain.node_nonce = 3

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False

    assert len(resyncs) == 1
    assert chain.sent_transactions == []
    assert nm.next() == 3


@pytest.mark.asyncio
async def test_other_failure_returns_false_without_resync():
    chain, nm, approvals, resyncs = await make_env(pending_nonce=2)
    chain.fail_next("send_transaction", ValueError("insufficient funds for gas * price + value"))

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False

    assert resyncs == []
    assert nm.next() == 2


@pytest.mark.asyncio
async def test_allowance_read_failure_returns_false():
    chain, nm, approvals, resyncs = await make_env()
    chain.fail_next("token_allowance", ConnectionError("rpc down"))

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False
    assert chain.sent_transactions == []
    assert resyncs == []


@pytest.mark.asyncio
async def test_reverted_approval_spends_nonce_and_fails():
    chain, nm, approvals, resyncs = await make_env(pending_nonce=6)
    chain.reverting.add("approve")

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False

    assert nm.next() == 7
    assert chain.allowances.get((TOKEN, ROUTER), 0) == 0
    assert resyncs == []


@pytest.mark.asyncio
async def test_desynchronized_nonce_heals_on_next_attempt():
    chain, nm, approvals, resyncs = await make_env(pending_nonce=0)
    # Another transaction from this wallet landed outside our control
    chain.node_nonce = 1

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False
    assert len(resyncs) == 1

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is True
    assert chain.sent_transactions[-1]["nonce"] == 1
    assert nm.next() == 2


@pytest.mark.asyncio
async def test_each_token_allowance_is_checked_independently():
    chain, nm, approvals, _ = await make_env()
    other = "0x3333333333333333333333333333333333333333"
    chain.allowances[(TOKEN, ROUTER)] = 10**30

    assert await approvals.ensure_approved(TOKEN, ROUTER, 1) is True
    assert await approvals.ensure_approved(other, ROUTER, 2) is True

    assert [tx["to"] for tx in chain.sent_transactions] == [other]


@pytest.mark.asyncio
async def test_amount_the_abi_cannot_encode_fails_only_this_approval():
    chain = AbiCheckingChain()
    nm = NonceManager(chain)
    await nm.initialize()
    approvals = TokenApprovalController(chain, nm)
    other = TX_FAILURES.labels(kind="other")
    before = other._value.get()

    assert await approvals.ensure_approved(TOKEN, ROUTER, 2**256) is False

    assert "prepare_call" in chain.ops()
    assert "send_transaction" not in chain.ops()
    assert other._value.get() == before + 1
    assert nm.next() == 0


@pytest.mark.asyncio
async def test_read_failure_is_counted_apart_from_transaction_failures():
    chain, nm, approvals, resyncs = await make_env()
    chain.fail_next("token_allowance", ConnectionError("rpc down"))
    read = TX_FAILURES.labels(kind="read")
    other = TX_FAILURES.labels(kind="other")
    read_before, other_before = read._value.get(), other._value.get()

    assert await approvals.ensure_approved(TOKEN, ROUTER, AMOUNT) is False

    assert read._value.get() == read_before + 1
    assert other._value.get() == other_before
    assert resyncs == []
