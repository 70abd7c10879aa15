"""
Tenant repository (persistence).

Reads per-tenant attribution settings from the ``client_config`` table.
A missing row means the tenant is not configured for attribution.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.attribution import ATTRIBUTION_WINDOW_DAYS, TenantConfig
from repositories.client import execute, get_supabase, rows_of

# Keep this aligned with your database schema.
_CLIENT_CONFIG_TABLE: str = "client_config"


def _row_to_tenant_config(row: Mapping[str, Any], default_window_days: int) -> TenantConfig:
    window = row.get("attribution_window_days")
    soft = row.get("soft_match_enabled")
    exclude = row.get("exclude_personal_domains")
    return TenantConfig(
        tenant_id=str(row["id"]),
        name=str(row.get("client_name") or ""),
        attribution_window_days=int(window) if window is not None else default_window_days,
        soft_match_enabled=True if soft is None else bool(soft),
        exclude_personal_domains=True if exclude is None else bool(exclude),
    )


class SupabaseTenantStore:
    def __init__(self, client: Optional[Client] = None, *, default_window_days: int = ATTRIBUTION_WINDOW_DAYS):
        self._client = client
        self._default_window_days = default_window_days

    @property
    def client(self) -> Client:
        return self._client or get_supabase()

    def get_tenant_config(self, tenant_id: str) -> Optional[TenantConfig]:
        response = execute(
            self.client.table(_CLIENT_CONFIG_TABLE).select("*").eq("id", tenant_id).limit(1),
            "get tenant config",
        )
        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_tenant_config(rows[0], self._default_window_days)


__all__ = ["SupabaseTenantStore"]
