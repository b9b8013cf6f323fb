# /volume_swapper/core/campaign.py
# The driving loop: walks every leg of the plan, approving then swapping, and
# sleeps a random whole-second delay between iterations. A failed approval or
# swap only fails its own iteration; the campaign always runs to the end.
import asyncio
import random
from typing import Awaitable, Callable

from pydantic import BaseModel
from web3 import Web3

from volume_swapper.adapters.dex import SwapExecutor, TokenApprovalController
from volume_swapper.core.config import CampaignConfig, Settings
from volume_swapper.core.logger import get_logger, bind_pair, SWAPS_TOTAL
from volume_swapper.core.models import CampaignLeg, CampaignPlan, TokenDescriptor
from volume_swapper.core.nonce_manager import NonceManager
from volume_swapper.core.portfolio import BalanceReporter

log = get_logger(__name__)


def campaign_tokens(cfg: Settings) -> dict:
    return {
        "USDT": TokenDescriptor(symbol="USDT", address=Web3.to_checksum_address(cfg.USDT_ADDRESS)),
        "ETH": TokenDescriptor(symbol="ETH", address=Web3.to_checksum_address(cfg.ETH_ADDRESS)),
        "BTC": TokenDescriptor(symbol="BTC", address=Web3.to_checksum_address(cfg.BTC_ADDRESS)),
    }


def build_campaign_plan(cfg: Settings, campaign_config: CampaignConfig) -> CampaignPlan:
    """USDT->ETH, USDT->BTC, then BTC->ETH, each repeated NUM_SWAPS_PER_PAIR times."""
    tokens = campaign_tokens(cfg)
    usdt_amount = campaign_config.usdt_amount()
    btc_amount = campaign_config.btc_amount()
    reps = campaign_config.NUM_SWAPS_PER_PAIR
    return CampaignPlan(legs=[
        CampaignLeg(token_in=tokens["USDT"], token_out=tokens["ETH"], amount=usdt_amount, repetitions=reps),
        CampaignLeg(token_in=tokens["USDT"], token_out=tokens["BTC"], amount=usdt_amount, repetitions=reps),
        CampaignLeg(token_in=tokens["BTC"], token_out=tokens["ETH"], amount=btc_amount, repetitions=reps),
    ])


def random_delay_seconds(low: int, high: int, rng: random.Random | None = None) -> int:
    """Uniform whole seconds in [low, high], both ends inclusive."""
    if low > high:
        raise ValueError(f"Delay range is empty: min={low} > max={high}")
    return (rng or random).randint(low, high)


class CampaignSummary(BaseModel):
    attempted: int = 0
    approvals_failed: int = 0
    swaps_succeeded: int = 0
    swaps_failed: int = 0


class SwapCampaign:
    """
    Runs a CampaignPlan to completion against one wallet.

    All submissions go through the shared NonceManager one at a time; nothing
    here may be made concurrent without breaking nonce sequencing.
    """
    def __init__(
        self,
        plan: CampaignPlan,
        nonce_manager: NonceManager,
        approvals: TokenApprovalController,
        executor: SwapExecutor,
        reporter: BalanceReporter,
        router_address: str,
        delay_min: int,
        delay_max: int,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        if delay_min > delay_max:
            raise ValueError("delay_min must not exceed delay_max")
        self.plan = plan
        self.nonce_manager = nonce_manager
        self.approvals = approvals
        self.executor = executor
        self.reporter = reporter
        self.router_address = router_address
        self.delay_min = delay_min
        self.delay_max = delay_max
        self.sleep = sleep
        self.rng = rng or random.Random()

    async def run(self) -> CampaignSummary:
        summary = CampaignSummary()
        # Without a starting nonce nothing can be sequenced: let it propagate.
        await self.nonce_manager.initialize()
        await self.reporter.report()
        log.info("CAMPAIGN_STARTING", legs=len(self.plan.legs), cycles=self.plan.total_cycles)

        for leg in self.plan.legs:
            bind_pair(leg.label)
            log.info("CAMPAIGN_LEG_STARTED", pair=leg.label, repetitions=leg.repetitions, amount=leg.amount.format())
            for i in range(leg.repetitions):
                log.info("SWAP_ITERATION", pair=leg.label, iteration=i + 1, of=leg.repetitions)
                summary.attempted += 1
                await self._run_cycle(leg, summary)

                if i < leg.repetitions - 1:
                    delay = random_delay_seconds(self.delay_min, self.delay_max, self.rng)
                    log.info("WAITING_BEFORE_NEXT_SWAP", seconds=delay)
                    await self.sleep(delay)

        bind_pair("-")
        log.info("CAMPAIGN_FINISHED", **summary.model_dump())
        await self.reporter.report()
        return summary

    async def _run_cycle(self, leg: CampaignLeg, summary: CampaignSummary):
        approved = await self.approvals.ensure_approved(leg.token_in.address, self.router_address, leg.amount.raw)
        if not approved:
            summary.approvals_failed += 1
            SWAPS_TOTAL.labels(pair=leg.label, outcome="skipped").inc()
            log.warning("SWAP_SKIPPED_APPROVAL_FAILED", token=leg.token_in.symbol)
            return

        swapped = await self.executor.swap(leg.token_in.address, leg.token_out.address, leg.amount.raw)
        if swapped:
            summary.swaps_succeeded += 1
            SWAPS_TOTAL.labels(pair=leg.label, outcome="success").inc()
            await self.reporter.report()
        else:
            summary.swaps_failed += 1
            SWAPS_TOTAL.labels(pair=leg.label, outcome="failure").inc()
