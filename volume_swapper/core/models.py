# /volume_swapper/core/models.py
# Value types shared by the chain client, the adapters and the campaign.
import time
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, List

from pydantic import BaseModel, Field

# Wide enough for any uint256 with 255 decimals of scale.
_DECIMAL_PRECISION = 160

SWAP_DEADLINE_SECONDS = 60 * 10
UINT256_MAX = 2**256 - 1


def format_units(raw: int, decimals: int) -> str:
    """Renders an integer token amount as a decimal string, e.g. 50.0 or 0.001."""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        text = format(Decimal(raw).scaleb(-decimals), "f")
    if "." not in text:
        return text + ".0"
    text = text.rstrip("0")
    return text + "0" if text.endswith(".") else text


def short_hash(tx_hash: str | None) -> str:
    if not tx_hash:
        return "N/A"
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


class Amount(BaseModel):
    """An integer token amount together with the precision it is expressed in."""
    raw: int = Field(ge=0, le=UINT256_MAX)
    decimals: int = Field(ge=0, le=255)

    class Config:
        frozen = True

    @classmethod
    def parse(cls, value: str, decimals: int) -> "Amount":
        """Parses a human decimal string ("0.001") into base units."""
        try:
            with localcontext() as ctx:
                ctx.prec = _DECIMAL_PRECISION
                scaled = Decimal(str(value).strip()).scaleb(decimals)
        except InvalidOperation:
            raise ValueError(f"Invalid amount string: {value!r}")
        if not scaled.is_finite() or scaled < 0:
            raise ValueError(f"Amount must be a non-negative number: {value!r}")
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {value!r} has more than {decimals} fractional digits")
        return cls(raw=int(scaled), decimals=decimals)

    def format(self) -> str:
        return format_units(self.raw, self.decimals)


class TokenDescriptor(BaseModel):
    # Decimals deliberately absent: they are re-read from the contract on use.
    symbol: str
    address: str

    class Config:
        frozen = True


class SwapIntent(BaseModel):
    """
    Parameters of a single exactInputSingle call. Built fresh for every attempt:
    the deadline is fixed at construction, so an old intent must never be resent.
    """
    token_in: str
    token_out: str
    fee: int
    recipient: str
    deadline: int
    amount_in: int
    amount_out_minimum: int = 0
    sqrt_price_limit_x96: int = 0

    class Config:
        frozen = True

    @classmethod
    def build(cls, token_in: str, token_out: str, amount_in: int, fee: int, recipient: str, now: float | None = None) -> "SwapIntent":
        now = time.time() if now is None else now
        return cls(
            token_in=token_in,
            token_out=token_out,
            fee=fee,
            recipient=recipient,
            deadline=int(now) + SWAP_DEADLINE_SECONDS,
            amount_in=amount_in,
        )

    def as_router_params(self) -> Dict[str, Any]:
        # Key order mirrors ISwapRouter.ExactInputSingleParams.
        return {
            "tokenIn": self.token_in,
            "tokenOut": self.token_out,
            "fee": self.fee,
            "recipient": self.recipient,
            "deadline": self.deadline,
            "amountIn": self.amount_in,
            "amountOutMinimum": self.amount_out_minimum,
            "sqrtPriceLimitX96": self.sqrt_price_limit_x96,
        }


class CampaignLeg(BaseModel):
    token_in: TokenDescriptor
    token_out: TokenDescriptor
    amount: Amount
    repetitions: int = Field(ge=0)

    class Config:
        frozen = True

    @property
    def label(self) -> str:
        return f"{self.token_in.symbol}->{self.token_out.symbol}"


class CampaignPlan(BaseModel):
    legs: List[CampaignLeg] = Field(default_factory=list)

    class Config:
        frozen = True

    @property
    def total_cycles(self) -> int:
        return sum(leg.repetitions for leg in self.legs)


class Receipt(BaseModel):
    tx_hash: str
    block_number: int | None = None
    gas_used: int = 0
    status: int = 1

    class Config:
        frozen = True

    @property
    def succeeded(self) -> bool:
        return self.status == 1
