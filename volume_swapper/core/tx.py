# /volume_swapper/core/tx.py
# Async chain access for a single wallet: reads, signed submission, inclusion waits.
# Every failure leaves this module as a ChainError; submission failures carry a
# SubmissionErrorKind so callers never have to sniff message text.
import asyncio
from enum import Enum
from typing import Any, Callable, Awaitable

from eth_account import Account
from web3 import AsyncWeb3, AsyncHTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from volume_swapper.abis import ERC20_ABI, SWAP_ROUTER_ABI
from volume_swapper.core.decorators import retriable_network_call
from volume_swapper.core.logger import get_logger
from volume_swapper.core.models import Receipt

log = get_logger(__name__)


class SubmissionErrorKind(str, Enum):
    SEQUENCING_CONFLICT = "sequencing_conflict"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REVERTED = "reverted"
    TIMEOUT = "timeout"
    OTHER = "other"


class ChainError(Exception):
    """Base class for anything that went wrong talking to the node."""


class ChainReadError(ChainError):
    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation


class SubmissionError(ChainError):
    def __init__(self, kind: SubmissionErrorKind, message: str, tx_hash: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.tx_hash = tx_hash

    @property
    def is_sequencing_conflict(self) -> bool:
        return self.kind is SubmissionErrorKind.SEQUENCING_CONFLICT


_CONFLICT_MARKERS = ("nonce", "replacement transaction underpriced")


def classify_submission_error(error: BaseException) -> SubmissionErrorKind:
    if isinstance(error, SubmissionError):
        return error.kind
    message = str(error).lower()
    if any(marker in message for marker in _CONFLICT_MARKERS):
        return SubmissionErrorKind.SEQUENCING_CONFLICT
    if "insufficient funds" in message:
        return SubmissionErrorKind.INSUFFICIENT_FUNDS
    if isinstance(error, ContractLogicError) or "revert" in message:
        return SubmissionErrorKind.REVERTED
    if isinstance(error, (TimeExhausted, asyncio.TimeoutError)) or "timeout" in message or "timed out" in message:
        return SubmissionErrorKind.TIMEOUT
    return SubmissionErrorKind.OTHER


class ChainClient:
    """Read/write access to the node on behalf of one signing account."""
    def __init__(self, w3: AsyncWeb3, account, chain_id: int, receipt_timeout: float | None = None):
        self.w3 = w3
        self.account = account
        self.address = account.address
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout

    @classmethod
    async def connect(cls, rpc_url: str, private_key: str, receipt_timeout: float | None = None) -> "ChainClient":
        w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
        account = Account.from_key(private_key)
        client = cls(w3, account, 0, receipt_timeout)
        client.chain_id = await client._read("chain_id", lambda: w3.eth.chain_id)
        log.info("CHAIN_CLIENT_CONNECTED", address=client.address, chain_id=client.chain_id)
        return client

    # --- Reads -------------------------------------------------------------

    @retriable_network_call
    async def _fetch(self, fetch: Callable[[], Awaitable[Any]]):
        return await fetch()

    async def _read(self, operation: str, fetch: Callable[[], Awaitable[Any]]):
        try:
            return await self._fetch(fetch)
        except Exception as e:
            log.error("CHAIN_READ_FAILED", operation=operation, error=str(e))
            raise ChainReadError(operation, e) from e

    def token_contract(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def router_contract(self, router: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(router), abi=SWAP_ROUTER_ABI)

    async def pending_nonce(self) -> int:
        return await self._read("pending_nonce", lambda: self.w3.eth.get_transaction_count(self.address, "pending"))

    async def native_balance(self) -> int:
        return await self._read("native_balance", lambda: self.w3.eth.get_balance(self.address))

    async def gas_price(self) -> int:
        return await self._read("gas_price", lambda: self.w3.eth.gas_price)

    async def token_balance(self, token: str) -> int:
        contract = self.token_contract(token)
        return await self._read("balanceOf", lambda: contract.functions.balanceOf(self.address).call())

    async def token_allowance(self, token: str, owner: str, spender: str) -> int:
        contract = self.token_contract(token)
        spender = Web3.to_checksum_address(spender)
        return await self._read("allowance", lambda: contract.functions.allowance(owner, spender).call())

    async def token_decimals(self, token: str) -> int:
        contract = self.token_contract(token)
        return await self._read("decimals", lambda: contract.functions.decimals().call())

    # --- Writes ------------------------------------------------------------

    def prepare_call(self, contract, fn_name: str, *args):
        """Binds arguments to a contract function. Arguments the ABI cannot encode fail as OTHER."""
        try:
            return getattr(contract.functions, fn_name)(*args)
        except Exception as e:
            log.error("CONTRACT_CALL_REJECTED", fn=fn_name, error=str(e))
            raise SubmissionError(SubmissionErrorKind.OTHER, str(e)) from e

    async def send_transaction(self, call, gas_limit: int, gas_price: int, nonce: int) -> str:
        """Signs and submits a contract call with explicit gas and nonce. Never retried."""
        try:
            tx = await call.build_transaction({
                'from': self.address,
                'nonce': nonce,
                'gas': gas_limit,
                'gasPrice': gas_price,
                'chainId': self.chain_id,
            })
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = Web3.to_hex(await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction))
        except Exception as e:
            kind = classify_submission_error(e)
            log.error("TRANSACTION_SUBMISSION_FAILED", nonce=nonce, kind=kind.value, error=str(e))
            raise SubmissionError(kind, str(e)) from e
        log.info("TRANSACTION_BROADCASTED", tx_hash=tx_hash, nonce=nonce)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str) -> Receipt:
        """Blocks until the node reports inclusion. No timeout unless one was configured."""
        try:
            raw = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            kind = classify_submission_error(e)
            log.error("TRANSACTION_CONFIRMATION_FAILED", tx_hash=tx_hash, kind=kind.value, error=str(e))
            raise SubmissionError(kind, str(e), tx_hash=tx_hash) from e
        return Receipt(
            tx_hash=Web3.to_hex(raw["transactionHash"]),
            block_number=raw.get("blockNumber"),
            gas_used=raw.get("gasUsed", 0),
            status=raw.get("status", 1),
        )
