# /volume_swapper/adapters/mock.py
# In-memory stand-in for ChainClient used by the test suite.
# Records every chain interaction in order so tests can assert on sequencing.

from typing import Any, Dict, List, Tuple

from volume_swapper.core.logger import get_logger
from volume_swapper.core.models import Receipt
from volume_swapper.core.tx import ChainReadError, SubmissionError, SubmissionErrorKind, classify_submission_error

log = get_logger(__name__)


class MockCall:
    """What a contract function call would encode: target, function name and args."""
    def __init__(self, to: str, fn_name: str, args: Tuple[Any, ...]):
        self.to = to
        self.fn_name = fn_name
        self.args = args

    def __repr__(self):
        return f"MockCall({self.to}, {self.fn_name}, {self.args})"


class _MockFunctions:
    def __init__(self, address: str):
        self._address = address

    def __getattr__(self, fn_name: str):
        def build(*args):
            return MockCall(self._address, fn_name, args)
        return build


class MockContract:
    def __init__(self, address: str):
        self.address = address
        self.functions = _MockFunctions(address)


class MockChainClient:
    """
    Simulates a node for a single wallet.

    Approvals take effect on their receipt, the node's pending nonce advances on
    every accepted submission, and failures can be queued per operation.
    """
    def __init__(self, address: str = "0x00000000000000000000000000000000000000A1", pending_nonce: int = 0):
        self.address = address
        self.node_nonce = pending_nonce
        self.native = 10**18
        self.gas = 1_000_000_000
        self.decimals: Dict[str, int] = {}
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.sent_transactions: List[Dict[str, Any]] = []
        self.reverting: set = set()
        self._failures: Dict[str, List[Exception]] = {}
        self._pending: Dict[str, Dict[str, Any]] = {}
        log.info("MOCK_CHAIN_CLIENT_INITIALIZED", address=self.address)

    # --- Test controls -----------------------------------------------------

    def fail_next(self, operation: str, error: Exception):
        """Queue an error for the next call of `operation` (e.g. "send_transaction")."""
        self._failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str):
        queued = self._failures.get(operation)
        if queued:
            return queued.pop(0)
        return None

    def ops(self) -> List[str]:
        return [name for name, _ in self.calls]

    # --- Reads -------------------------------------------------------------

    def _read(self, operation: str, detail: Any, value):
        self.calls.append((operation, detail))
        error = self._maybe_fail(operation)
        if error is not None:
            raise ChainReadError(operation, error)
        return value

    async def pending_nonce(self) -> int:
        return self._read("pending_nonce", None, self.node_nonce)

    async def native_balance(self) -> int:
        return self._read("native_balance", None, self.native)

    async def gas_price(self) -> int:
        return self._read("gas_price", None, self.gas)

    async def token_balance(self, token: str) -> int:
        return self._read("token_balance", token, self.balances.get(token, 0))

    async def token_allowance(self, token: str, owner: str, spender: str) -> int:
        return self._read("token_allowance", token, self.allowances.get((token, spender), 0))

    async def token_decimals(self, token: str) -> int:
        return self._read("token_decimals", token, self.decimals.get(token, 18))

    def token_contract(self, token: str) -> MockContract:
        return MockContract(token)

    def router_contract(self, router: str) -> MockContract:
        return MockContract(router)

    # --- Writes ------------------------------------------------------------

    def prepare_call(self, contract: MockContract, fn_name: str, *args) -> MockCall:
        self.calls.append(("prepare_call", fn_name))
        error = self._maybe_fail("prepare_call")
        if error is not None:
            raise SubmissionError(SubmissionErrorKind.OTHER, str(error))
        return getattr(contract.functions, fn_name)(*args)

    async def send_transaction(self, call: MockCall, gas_limit: int, gas_price: int, nonce: int) -> str:
        self.calls.append(("send_transaction", call.fn_name))
        error = self._maybe_fail("send_transaction")
        if error is None and nonce != self.node_nonce:
            error = ValueError(f"nonce too low: next nonce {self.node_nonce}, tx nonce {nonce}")
        if error is not None:
            log.error("MOCK_TX_REJECTED", fn=call.fn_name, nonce=nonce, error=str(error))
            raise SubmissionError(classify_submission_error(error), str(error))

        tx_hash = "0x" + f"{len(self.sent_transactions) + 1:064x}"
        tx = {"hash": tx_hash, "to": call.to, "fn": call.fn_name, "args": call.args,
              "gas": gas_limit, "gasPrice": gas_price, "nonce": nonce}
        self.sent_transactions.append(tx)
        self._pending[tx_hash] = tx
        self.node_nonce += 1
        log.info("MOCK_TRANSACTION_SENT", tx_hash=tx_hash, fn=call.fn_name, nonce=nonce)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        self.calls.append(("wait_for_receipt", tx_hash))
        error = self._maybe_fail("wait_for_receipt")
        if error is not None:
            raise SubmissionError(classify_submission_error(error), str(error), tx_hash=tx_hash)

        tx = self._pending.pop(tx_hash)
        status = 0 if tx["fn"] in self.reverting else 1
        if status and tx["fn"] == "approve":
            spender, amount = tx["args"]
            self.allowances[(tx["to"], spender)] = amount
        return Receipt(tx_hash=tx_hash, block_number=len(self.sent_transactions), gas_used=tx["gas"] // 2, status=status)
