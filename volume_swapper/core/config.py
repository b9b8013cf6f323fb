# /volume_swapper/core/config.py
import json
import os
from pydantic_settings import BaseSettings
from pydantic import BaseModel, SecretStr, Field, model_validator

from volume_swapper.core.models import Amount


class Settings(BaseSettings):
    # Connection parameters, checked by config_validator before anything runs
    RPC_URL: SecretStr | None = None
    PRIVATE_KEY: SecretStr | None = None
    ROUTER_ADDRESS: str | None = None
    USDT_ADDRESS: str | None = None
    ETH_ADDRESS: str | None = None  # usually WETH
    BTC_ADDRESS: str | None = None  # usually WBTC
    NETWORK_NAME: str = "Unknown Network"

    # Operational Settings
    CONFIG_FILE: str = "config.json"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"
    SENTRY_DSN: SecretStr | None = None
    RECEIPT_TIMEOUT_SECONDS: float | None = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


class CampaignConfig(BaseModel):
    """
    Tunable campaign parameters read from config.json.
    Keys match the JSON file so an existing config keeps working.
    """
    USDT_AMOUNT_FOR_SWAP_STR: str = "50"
    USDT_DECIMALS: int = Field(18, ge=0, le=255)
    ETH_AMOUNT_FOR_SWAP_STR: str = "0.01"
    ETH_DECIMALS: int = Field(18, ge=0, le=255)
    BTC_AMOUNT_FOR_SWAP_STR: str = "0.001"
    BTC_DECIMALS: int = Field(18, ge=0, le=255)  # WBTC-style tokens may use 8
    NUM_SWAPS_PER_PAIR: int = Field(10, ge=0)
    DELAY_SECONDS_MIN: int = Field(15, ge=0)
    DELAY_SECONDS_MAX: int = Field(45, ge=0)
    FEE_TIER: int = Field(3000, ge=0, lt=2**24)

    class Config:
        extra = "ignore"

    @model_validator(mode="after")
    def _check_ranges(self) -> "CampaignConfig":
        if self.DELAY_SECONDS_MIN > self.DELAY_SECONDS_MAX:
            raise ValueError("DELAY_SECONDS_MIN must not exceed DELAY_SECONDS_MAX")
        # Fail at load time rather than in the middle of a campaign.
        self.usdt_amount()
        self.eth_amount()
        self.btc_amount()
        return self

    def usdt_amount(self) -> Amount:
        return Amount.parse(self.USDT_AMOUNT_FOR_SWAP_STR, self.USDT_DECIMALS)

    def eth_amount(self) -> Amount:
        return Amount.parse(self.ETH_AMOUNT_FOR_SWAP_STR, self.ETH_DECIMALS)

    def btc_amount(self) -> Amount:
        return Amount.parse(self.BTC_AMOUNT_FOR_SWAP_STR, self.BTC_DECIMALS)


def load_campaign_config(path: str) -> CampaignConfig:
    """
    Merges config.json over the defaults.

    A missing file is replaced by one holding the defaults so the operator has
    something to edit. An unreadable file falls back to the defaults. Values
    that parse as JSON but fail validation raise ValueError.
    """
    from volume_swapper.core.logger import get_logger
    log = get_logger(__name__)

    defaults = CampaignConfig()
    if not os.path.exists(path):
        log.warning("CONFIG_FILE_NOT_FOUND_USING_DEFAULTS", path=path)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(json.dumps(defaults.model_dump(), indent=4))
            log.info("DEFAULT_CONFIG_FILE_CREATED", path=path)
        except OSError as e:
            log.error("DEFAULT_CONFIG_FILE_WRITE_FAILED", path=path, error=str(e))
        return defaults

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("CONFIG_FILE_UNREADABLE_USING_DEFAULTS", path=path, error=str(e))
        return defaults
    if not isinstance(loaded, dict):
        log.error("CONFIG_FILE_NOT_AN_OBJECT_USING_DEFAULTS", path=path)
        return defaults

    config = CampaignConfig.model_validate({**defaults.model_dump(), **loaded})
    log.info("CONFIG_FILE_LOADED", path=path)
    return config


try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from volume_swapper.core.logger import get_logger
        get_logger("VolumeSwapper.Config").critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    raise SystemExit(1)
