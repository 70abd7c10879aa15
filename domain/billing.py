"""
Domain: tenant billing configuration.

Contract excerpts implemented here:
- A billing model is exactly one of:
  - FlatRevshare(rate): every paying customer is billed at the same rate.
  - PlgSalesSplit(plg_rate, sales_rate): the rate depends on the line item's motion type.
- Per-event fees (signup, meeting, custom event) are an independent FeeSchedule that
  can be combined with either model.
- Rates are fractions (0.20 == 20%). Money is Decimal.
- estimated_acv is only used for pre-deadline estimates and auto-billing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

DEFAULT_REVIEW_WINDOW_DAYS: int = 10
DEFAULT_ESTIMATED_ACV: Decimal = Decimal("10000")

_ZERO = Decimal("0")
_TWO = Decimal("2")


class BillingCadence(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    TWENTY_EIGHT_DAY = "28_day"


class MotionType(str, Enum):
    PLG = "PLG"
    SALES = "SALES"


def _require_rate(name: str, value: Decimal) -> None:
    if value < _ZERO or value > Decimal("1"):
        raise ValueError(f"{name} must be between 0 and 1")


@dataclass(frozen=True, slots=True)
class FlatRevshare:
    rate: Decimal

    def __post_init__(self) -> None:
        _require_rate("rate", self.rate)

    def rate_for(self, motion_type: Optional[MotionType]) -> Decimal:
        return self.rate

    @property
    def average_rate(self) -> Decimal:
        return self.rate


@dataclass(frozen=True, slots=True)
class PlgSalesSplit:
    plg_rate: Decimal
    sales_rate: Decimal

    def __post_init__(self) -> None:
        _require_rate("plg_rate", self.plg_rate)
        _require_rate("sales_rate", self.sales_rate)

    def rate_for(self, motion_type: Optional[MotionType]) -> Decimal:
        # A paying customer with no recorded meeting is self-serve.
        if motion_type is MotionType.SALES:
            return self.sales_rate
        return self.plg_rate

    @property
    def average_rate(self) -> Decimal:
        return (self.plg_rate + self.sales_rate) / _TWO


BillingModel = Union[FlatRevshare, PlgSalesSplit]


@dataclass(frozen=True, slots=True)
class FeeSchedule:
    fee_per_signup: Decimal = _ZERO
    fee_per_meeting: Decimal = _ZERO
    custom_event_fee: Decimal = _ZERO

    def __post_init__(self) -> None:
        for name in ("fee_per_signup", "fee_per_meeting", "custom_event_fee"):
            if getattr(self, name) < _ZERO:
                raise ValueError(f"{name} must be >= 0")

    @property
    def charges_signups(self) -> bool:
        return self.fee_per_signup > _ZERO

    @property
    def charges_meetings(self) -> bool:
        return self.fee_per_meeting > _ZERO


@dataclass(frozen=True, slots=True)
class BillingConfig:
    tenant_id: str
    model: BillingModel
    contract_start: date
    cadence: BillingCadence = BillingCadence.MONTHLY
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    review_window_days: int = DEFAULT_REVIEW_WINDOW_DAYS
    estimated_acv: Decimal = DEFAULT_ESTIMATED_ACV

    def __post_init__(self) -> None:
        if self.review_window_days < 0:
            raise ValueError("review_window_days must be >= 0")
        if self.estimated_acv < _ZERO:
            raise ValueError("estimated_acv must be >= 0")


def build_billing_model(
    model_name: Optional[str],
    *,
    flat_rate: Optional[Decimal] = None,
    plg_rate: Optional[Decimal] = None,
    sales_rate: Optional[Decimal] = None,
) -> BillingModel:
    """
    Build a BillingModel from stored column values.

    ``model_name`` is ``flat_revshare`` (default) or ``plg_sales_split``. A split
    model with a missing side rate borrows the flat rate for it.
    """

    name = (model_name or "flat_revshare").strip().lower()
    if name == "flat_revshare":
        if flat_rate is None:
            raise ValueError("flat_revshare requires a rate")
        return FlatRevshare(rate=flat_rate)
    if name == "plg_sales_split":
        plg = plg_rate if plg_rate is not None else flat_rate
        sales = sales_rate if sales_rate is not None else flat_rate
        if plg is None or sales is None:
            raise ValueError("plg_sales_split requires plg and sales rates")
        return PlgSalesSplit(plg_rate=plg, sales_rate=sales)
    raise ValueError(f"Unknown billing model: {model_name!r}")


__all__ = [
    "DEFAULT_REVIEW_WINDOW_DAYS",
    "DEFAULT_ESTIMATED_ACV",
    "BillingCadence",
    "MotionType",
    "FlatRevshare",
    "PlgSalesSplit",
    "BillingModel",
    "FeeSchedule",
    "BillingConfig",
    "build_billing_model",
]
