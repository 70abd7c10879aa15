"""
Supabase client initialization and shared persistence helpers.

The client is created on first use so that modules importing the repositories
(and tests that never touch the database) do not need credentials.

Environment variables required by get_supabase():
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from datetime import date, datetime, timezone
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, List, Optional

from dotenv import load_dotenv
from postgrest.exceptions import APIError
from supabase import Client, create_client  # type: ignore[import-not-found]

from domain.time import require_utc_timestamp

# Look for .env in the project root
env_path = Path(__file__).parent.parent / ".env"

PAGE_SIZE: int = 1000


class RepositoryError(RuntimeError):
    """A Supabase call failed; the message carries the Supabase error text."""


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    load_dotenv(dotenv_path=env_path)

    url: str | None = os.getenv("SUPABASE_URL")
    key: str | None = os.getenv("SUPABASE_KEY")

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(url, key)


def execute(query: Any, action: str) -> Any:
    """
    Execute a PostgREST query builder and surface failures as RepositoryError.

    Example:
        response = execute(client.table("processing_job").select("*").eq("id", job_id), "get job")
    """

    try:
        response = query.execute()
    except APIError as exc:
        raise RepositoryError(f"Failed to {action}: {exc.message or exc}") from exc

    error = getattr(response, "error", None)
    if error:
        raise RepositoryError(f"Failed to {action}: {error}")
    return response


def rows_of(response: Any) -> List[dict]:
    return list(getattr(response, "data", None) or [])


def fetch_all(build_query: Callable[[], Any], action: str, page_size: int = PAGE_SIZE) -> List[dict]:
    """Read every row of a query, one ``range`` page at a time."""

    rows: List[dict] = []
    offset = 0
    while True:
        page = rows_of(execute(build_query().range(offset, offset + page_size - 1), action))
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += len(page)


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def optional_iso_utc(dt: Optional[datetime], *, name: str) -> Optional[str]:
    return to_iso_utc(dt, name=name) if dt is not None else None


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Unsupported date type: {type(value)!r}")


def parse_optional_date(value: Any) -> Optional[date]:
    return parse_date(value) if value else None


def parse_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None:
        return default
    return Decimal(str(value))


def money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


__all__ = [
    "PAGE_SIZE",
    "RepositoryError",
    "get_supabase",
    "execute",
    "rows_of",
    "fetch_all",
    "to_iso_utc",
    "optional_iso_utc",
    "parse_utc_datetime",
    "parse_optional_datetime",
    "parse_date",
    "parse_optional_date",
    "parse_decimal",
    "money",
]
