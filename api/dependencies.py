"""
Store factories for the API.

Routes receive their stores through FastAPI ``Depends`` so tests can swap in
in-memory implementations with ``app.dependency_overrides``.
"""

from repositories.attribution_repository import SupabaseAttributionStore
from repositories.billing_repository import SupabaseBillingStore
from repositories.event_repository import SupabaseEmailLog, SupabaseEventSource
from repositories.job_repository import SupabaseJobStore
from repositories.tenant_repository import SupabaseTenantStore
from services.settings import Settings, get_settings


def get_app_settings() -> Settings:
    return get_settings()


def get_event_source() -> SupabaseEventSource:
    return SupabaseEventSource()


def get_email_log() -> SupabaseEmailLog:
    return SupabaseEmailLog()


def get_tenant_store() -> SupabaseTenantStore:
    return SupabaseTenantStore(default_window_days=get_settings().attribution_window_days)


def get_attribution_store() -> SupabaseAttributionStore:
    return SupabaseAttributionStore()


def get_job_store() -> SupabaseJobStore:
    return SupabaseJobStore()


def get_billing_store() -> SupabaseBillingStore:
    settings = get_settings()
    return SupabaseBillingStore(
        default_review_window_days=settings.default_review_window_days,
        default_estimated_acv=settings.default_estimated_acv,
    )
