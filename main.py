# /main.py
# Runs one swap campaign for the configured wallet, then exits.
# Exit status: 0 when the campaign ran to the end (individual swaps may have
# failed), 1 on a startup or unexpected error, 130 on Ctrl-C.
import asyncio
import sys

from volume_swapper.core.config import settings, load_campaign_config
from volume_swapper.core.config_validator import validate as validate_config
from volume_swapper.core.logger import configure_logging, get_logger
from volume_swapper.core.tx import ChainClient
from volume_swapper.core.nonce_manager import NonceManager
from volume_swapper.core.portfolio import BalanceReporter
from volume_swapper.core.campaign import SwapCampaign, build_campaign_plan, campaign_tokens
from volume_swapper.adapters.dex import TokenApprovalController, SwapExecutor
from web3 import Web3


async def main():
    configure_logging()
    log = get_logger("VolumeSwapper.System")
    validate_config()
    campaign_config = load_campaign_config(settings.CONFIG_FILE)

    log.info(
        "AUTOMATED_SWAP_STARTING",
        network=settings.NETWORK_NAME,
        swaps_per_pair=campaign_config.NUM_SWAPS_PER_PAIR,
        usdt_amount=campaign_config.usdt_amount().format(),
        eth_amount=campaign_config.eth_amount().format(),
        btc_amount=campaign_config.btc_amount().format(),
        delay_seconds=f"{campaign_config.DELAY_SECONDS_MIN}-{campaign_config.DELAY_SECONDS_MAX}",
        fee_tier=campaign_config.FEE_TIER,
    )

    chain = await ChainClient.connect(
        settings.RPC_URL.get_secret_value(),
        settings.PRIVATE_KEY.get_secret_value(),
        receipt_timeout=settings.RECEIPT_TIMEOUT_SECONDS,
    )
    log.info("WALLET_LOADED", address=chain.address)

    router = Web3.to_checksum_address(settings.ROUTER_ADDRESS)
    nonce_manager = NonceManager(chain)
    campaign = SwapCampaign(
        plan=build_campaign_plan(settings, campaign_config),
        nonce_manager=nonce_manager,
        approvals=TokenApprovalController(chain, nonce_manager),
        executor=SwapExecutor(chain, nonce_manager, router, campaign_config.FEE_TIER),
        reporter=BalanceReporter(chain, list(campaign_tokens(settings).values()), settings.NETWORK_NAME),
        router_address=router,
        delay_min=campaign_config.DELAY_SECONDS_MIN,
        delay_max=campaign_config.DELAY_SECONDS_MAX,
    )
    summary = await campaign.run()
    log.info("AUTOMATED_SWAP_FINISHED", **summary.model_dump())


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        get_logger("VolumeSwapper.System").critical("UNHANDLED_CRITICAL_ERROR", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
