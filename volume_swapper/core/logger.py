# /volume_swapper/core/logger.py
import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from volume_swapper.core.config import settings

# --- Prometheus Metrics ---
SWAPS_TOTAL = Counter("volume_swapper_swaps_total", "Swap attempts by pair and outcome", ["pair", "outcome"])
APPROVALS_SENT = Counter("volume_swapper_approvals_sent_total", "Approval transactions included on chain")
TX_FAILURES = Counter("volume_swapper_tx_failures_total", "Failed approval or swap transactions", ["kind"])
NONCE_RESYNCS = Counter("volume_swapper_nonce_resyncs_total", "Times the local nonce was re-fetched from the node")


def _renderers():
    if settings.LOG_FORMAT.lower() == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN.get_secret_value(), traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_renderers(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_pair(pair: str):
    bind_contextvars(pair=pair)


configure_logging()
log = get_logger("VolumeSwapper.System")
