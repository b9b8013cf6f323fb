# /volume_swapper/adapters/dex.py
# Approval and exact-input single-hop swaps against a V3-style SwapRouter.
# Neither component retries: a failed transaction is reported and the campaign
# moves on. Resubmitting a swap with a stale deadline is unsafe.
from web3.constants import ADDRESS_ZERO

from volume_swapper.core.logger import get_logger, APPROVALS_SENT, TX_FAILURES
from volume_swapper.core.models import SwapIntent, format_units, short_hash
from volume_swapper.core.nonce_manager import NonceManager
from volume_swapper.core.tx import ChainError, SubmissionError, SubmissionErrorKind

log = get_logger(__name__)

APPROVAL_GAS_LIMIT = 100_000
SWAP_GAS_LIMIT = 250_000
NATIVE_ASSET_PLACEHOLDER = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
READ_FAILURE_KIND = "read"


def is_native_asset(token: str) -> bool:
    return token.lower() in (ADDRESS_ZERO.lower(), NATIVE_ASSET_PLACEHOLDER)


async def _recover(nonce_manager: NonceManager, operation: str, error: ChainError):
    """Logs a failed approval/swap and resyncs the nonce on a sequencing conflict."""
    # Reads failing before any submission are counted apart from transaction failures.
    kind = error.kind.value if isinstance(error, SubmissionError) else READ_FAILURE_KIND
    TX_FAILURES.labels(kind=kind).inc()
    tx_hash = getattr(error, "tx_hash", None)
    log.error(f"{operation}_FAILED", kind=kind, error=str(error), tx_hash=tx_hash)
    if isinstance(error, SubmissionError) and error.is_sequencing_conflict:
        log.info("NONCE_CONFLICT_DETECTED", operation=operation.lower())
        await nonce_manager.resync()


class TokenApprovalController:
    """Makes sure the router may spend enough of a token before a swap."""
    def __init__(self, chain, nonce_manager: NonceManager):
        self.chain = chain
        self.nonce_manager = nonce_manager

    async def ensure_approved(self, token: str, spender: str, required_amount: int) -> bool:
        """
        Approves exactly required_amount when the current allowance is short.

        Returns True without sending anything when the allowance already covers
        the amount. Never grants an unlimited allowance.
        """
        try:
            decimals = await self.chain.token_decimals(token)
            allowance = await self.chain.token_allowance(token, self.chain.address, spender)
            if allowance >= required_amount:
                log.info("APPROVAL_NOT_NEEDED", token=token, allowance=format_units(allowance, decimals))
                return True

            log.info("APPROVING_TOKEN", token=token, spender=spender, amount=format_units(required_amount, decimals))
            gas_price = await self.chain.gas_price()
            call = self.chain.prepare_call(self.chain.token_contract(token), "approve", spender, required_amount)
            tx_hash = await self.chain.send_transaction(
                call,
                gas_limit=APPROVAL_GAS_LIMIT,
                gas_price=gas_price,
                nonce=self.nonce_manager.next(),
            )
            log.info("APPROVAL_SENT_AWAITING_CONFIRMATION", tx=short_hash(tx_hash))
            receipt = await self.chain.wait_for_receipt(tx_hash)
            # Included, so the nonce is spent whatever the outcome.
            self.nonce_manager.advance()
        except ChainError as e:
            await _recover(self.nonce_manager, "APPROVAL", e)
            return False

        if not receipt.succeeded:
            TX_FAILURES.labels(kind=SubmissionErrorKind.REVERTED.value).inc()
            log.error("APPROVAL_REVERTED", token=token, tx=short_hash(receipt.tx_hash))
            return False
        APPROVALS_SENT.inc()
        log.info("APPROVAL_CONFIRMED", token=token, tx=short_hash(receipt.tx_hash))
        return True


class SwapExecutor:
    """Submits exactInputSingle swaps with no minimum output."""
    def __init__(self, chain, nonce_manager: NonceManager, router_address: str, fee_tier: int):
        self.chain = chain
        self.nonce_manager = nonce_manager
        self.router_address = router_address
        self.router = chain.router_contract(router_address)
        self.fee_tier = fee_tier
        self.last_receipt = None

    async def swap(self, token_in: str, token_out: str, amount_in: int) -> bool:
        if is_native_asset(token_in):
            log.error(
                "NATIVE_ASSET_SWAP_UNSUPPORTED",
                token_in=token_in,
                detail="exactInputSingle routes ERC-20 to ERC-20 only; use the wrapped token.",
            )
            return False

        try:
            decimals = await self.chain.token_decimals(token_in)
            log.info(
                "SWAP_ATTEMPT",
                amount=format_units(amount_in, decimals),
                token_in=token_in,
                token_out=token_out,
                fee_tier=self.fee_tier,
            )
            intent = SwapIntent.build(token_in, token_out, amount_in, self.fee_tier, self.chain.address)
            gas_price = await self.chain.gas_price()
            call = self.chain.prepare_call(self.router, "exactInputSingle", intent.as_router_params())
            tx_hash = await self.chain.send_transaction(
                call,
                gas_limit=SWAP_GAS_LIMIT,
                gas_price=gas_price,
                nonce=self.nonce_manager.next(),
            )
            log.info("SWAP_SENT_AWAITING_CONFIRMATION", tx=short_hash(tx_hash))
            receipt = await self.chain.wait_for_receipt(tx_hash)
            self.nonce_manager.advance()
        except ChainError as e:
            await _recover(self.nonce_manager, "SWAP", e)
            return False

        self.last_receipt = receipt
        if not receipt.succeeded:
            TX_FAILURES.labels(kind=SubmissionErrorKind.REVERTED.value).inc()
            log.error("SWAP_REVERTED", tx=short_hash(receipt.tx_hash), gas_used=receipt.gas_used)
            return False
        log.info("SWAP_CONFIRMED", tx=short_hash(receipt.tx_hash), gas_used=receipt.gas_used)
        return True
