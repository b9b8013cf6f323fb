# /volume_swapper/core/nonce_manager.py
# Single source of truth for the wallet's next transaction nonce.
# Single writer: only the campaign's sequential call sites touch it, so no locking.

from volume_swapper.core.logger import get_logger, NONCE_RESYNCS

log = get_logger(__name__)


class NonceNotInitializedError(RuntimeError):
    pass


class NonceManager:
    """
    Holds the nonce the next outgoing transaction must carry.

    Callers read it with next() and call advance() once the node has accepted
    the transaction. After a sequencing conflict the local value is discarded
    and re-fetched from the node's pending view with resync().
    """
    def __init__(self, chain):
        self.chain = chain
        self.nonce: int | None = None

    async def initialize(self) -> int:
        """Fetches the pending-inclusive transaction count. Failures propagate."""
        try:
            self.nonce = await self.chain.pending_nonce()
        except Exception as e:
            log.critical("NONCE_INITIALIZATION_FAILED", error=str(e))
            raise
        log.info("NONCE_FROM_RPC", nonce=self.nonce)
        return self.nonce

    def next(self) -> int:
        if self.nonce is None:
            raise NonceNotInitializedError("NonceManager.initialize() has not completed")
        return self.nonce

    def advance(self) -> int:
        self.nonce = self.next() + 1
        log.debug("NONCE_ADVANCED", nonce=self.nonce)
        return self.nonce

    async def resync(self) -> int:
        stale = self.nonce
        NONCE_RESYNCS.inc()
        await self.initialize()
        log.warning("NONCE_RESYNCED", previous=stale, nonce=self.nonce)
        return self.nonce
