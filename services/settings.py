"""
Runtime settings.

Values are read from the environment (a ``.env`` file at the project root is
loaded first). Every setting has a default; an unparsable value is a startup
error naming the variable.

Environment variables:
- ATTRIBUTION_BATCH_SIZE: events per batch (default 1000)
- ATTRIBUTION_BATCH_DELAY_MS: pause between batches (default 100)
- ATTRIBUTION_WINDOW_DAYS: window for tenants without an override (default 31)
- BILLING_DEFAULT_REVIEW_WINDOW_DAYS: review window when a tenant has none (default 10)
- BILLING_DEFAULT_ESTIMATED_ACV: estimated contract value when a tenant has none (default 10000)
- CORS_ALLOW_ORIGINS: comma-separated origins allowed by the API (default "*")
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

from domain.attribution import ATTRIBUTION_WINDOW_DAYS
from domain.billing import DEFAULT_ESTIMATED_ACV, DEFAULT_REVIEW_WINDOW_DAYS

env_path = Path(__file__).parent.parent / ".env"


@dataclass(frozen=True, slots=True)
class Settings:
    batch_size: int = 1000
    batch_delay_ms: int = 100
    attribution_window_days: int = ATTRIBUTION_WINDOW_DAYS
    default_review_window_days: int = DEFAULT_REVIEW_WINDOW_DAYS
    default_estimated_acv: Decimal = DEFAULT_ESTIMATED_ACV
    cors_allow_origins: Tuple[str, ...] = ("*",)


def _origins_env(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name) or ""
    origins = tuple(o.strip() for o in raw.split(",") if o.strip())
    return origins or ("*",)


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not an integer.") from None
    if value < minimum:
        raise RuntimeError(f"Invalid environment variable: {name} must be >= {minimum}.")
    return value


def _decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not a number.") from None
    if not value.is_finite():
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not a number.")
    if value < 0:
        raise RuntimeError(f"Invalid environment variable: {name} must be >= 0.")
    return value


def load_settings() -> Settings:
    load_dotenv(dotenv_path=env_path)
    return Settings(
        batch_size=_int_env("ATTRIBUTION_BATCH_SIZE", 1000, minimum=1),
        batch_delay_ms=_int_env("ATTRIBUTION_BATCH_DELAY_MS", 100),
        attribution_window_days=_int_env("ATTRIBUTION_WINDOW_DAYS", ATTRIBUTION_WINDOW_DAYS),
        default_review_window_days=_int_env("BILLING_DEFAULT_REVIEW_WINDOW_DAYS", DEFAULT_REVIEW_WINDOW_DAYS),
        default_estimated_acv=_decimal_env("BILLING_DEFAULT_ESTIMATED_ACV", DEFAULT_ESTIMATED_ACV),
        cors_allow_origins=_origins_env("CORS_ALLOW_ORIGINS"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


__all__ = ["Settings", "load_settings", "get_settings"]
