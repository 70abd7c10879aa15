"""
Event matcher.

Decides, for one business event, whether and how it ties back to an email the
agency sent. Reads the sent-email log and tenant settings only; it never writes.

Rules:
- The event's stated domain wins over the domain of its email address.
- Hard match: earliest email to the exact address, sent at or before the event.
- Soft match (only when hard fails): earliest email to any address at the
  canonical domain, sent at or before the event. Skipped for personal domains
  and for tenants with soft matching turned off.
- within_window iff days_since_email <= the tenant's window.
- Positive replies are answers to our own outreach: always HARD_MATCH and
  within the window.
- A tenant without attribution settings gets NO_MATCH with a reason; nothing
  is raised for that case.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from domain.attribution import MatchKind, MatchResult, TenantConfig
from domain.domains import canonicalize_domain, domain_from_email, is_personal_domain, normalize_email
from domain.events import BusinessEvent, EventKind, OutboundEmailRecord
from domain.time import days_between
from services.ports import EmailLog, TenantStore


def build_match_reason(
    kind: MatchKind,
    *,
    event_email: Optional[str],
    domain: Optional[str],
    matched_email: Optional[str] = None,
    matched_sent_at: Optional[datetime] = None,
    days_since_email: Optional[int] = None,
    within_window: bool = False,
    window_days: int = 0,
    personal_domain: bool = False,
) -> str:
    """
    Human-readable audit text for a match outcome.

    Example:
        "Hard match (exact email): Email sent to jane@acme.com on 2025-03-01,
         4 days before event. ATTRIBUTED (within 31-day window)"
    """

    if kind is MatchKind.NO_MATCH:
        if personal_domain:
            return f"No match: {domain} is a personal email domain (soft matching disabled)"
        return f"No match: No emails found sent to {event_email or domain} before the event"

    label = "Hard match (exact email)" if kind is MatchKind.HARD_MATCH else "Soft match (same domain)"
    sent_on = matched_sent_at.date().isoformat() if matched_sent_at else "unknown date"
    text = f"{label}: Email sent to {matched_email} on {sent_on}, {days_since_email} days before event."
    if within_window:
        return f"{text} ATTRIBUTED (within {window_days}-day window)"
    return f"{text} OUTSIDE WINDOW (>{window_days} days)"


class EventMatcher:
    """
    Matches events against the sent-email log.

    Tenant settings are looked up once per tenant and reused for the lifetime
    of the matcher (one matcher per attribution run).
    """

    def __init__(self, email_log: EmailLog, tenants: TenantStore):
        self._email_log = email_log
        self._tenants = tenants
        self._configs: Dict[str, Optional[TenantConfig]] = {}

    def _tenant_config(self, tenant_id: str) -> Optional[TenantConfig]:
        if tenant_id not in self._configs:
            self._configs[tenant_id] = self._tenants.get_tenant_config(tenant_id)
        return self._configs[tenant_id]

    def match(self, event: BusinessEvent) -> MatchResult:
        email = normalize_email(event.email)
        domain = canonicalize_domain(event.domain) or domain_from_email(email)

        if email is None and domain is None:
            return MatchResult(
                match_kind=MatchKind.NO_MATCH,
                within_window=False,
                match_reason="No match: event has no email address or domain",
            )

        config = self._tenant_config(event.tenant_id)
        if config is None:
            return MatchResult(
                match_kind=MatchKind.NO_MATCH,
                within_window=False,
                match_reason="No match: tenant is not configured for attribution",
                domain=domain,
            )

        personal = config.exclude_personal_domains and is_personal_domain(domain)

        hard: Optional[OutboundEmailRecord] = None
        if email is not None:
            hard = self._email_log.earliest_email_to(event.tenant_id, email, event.event_time)

        if event.kind is EventKind.POSITIVE_REPLY:
            return self._positive_reply(event, email, domain, hard, personal)

        if hard is not None:
            return self._matched(MatchKind.HARD_MATCH, event, email, domain, hard, config, personal)

        if domain is not None and config.soft_match_enabled and not personal:
            soft = self._email_log.earliest_email_to_domain(event.tenant_id, domain, event.event_time)
            if soft is not None:
                return self._matched(MatchKind.SOFT_MATCH, event, email, domain, soft, config, personal)

        return MatchResult(
            match_kind=MatchKind.NO_MATCH,
            within_window=False,
            match_reason=build_match_reason(
                MatchKind.NO_MATCH,
                event_email=email,
                domain=domain,
                personal_domain=personal,
            ),
            domain=domain,
            is_personal_domain=personal,
        )

    def _matched(
        self,
        kind: MatchKind,
        event: BusinessEvent,
        email: Optional[str],
        domain: Optional[str],
        sent: OutboundEmailRecord,
        config: TenantConfig,
        personal: bool,
    ) -> MatchResult:
        days = days_between(sent.sent_at, event.event_time)
        within = days <= config.attribution_window_days
        matched_email = sent.recipient_email.strip().lower()
        return MatchResult(
            match_kind=kind,
            within_window=within,
            match_reason=build_match_reason(
                kind,
                event_email=email,
                domain=domain,
                matched_email=matched_email,
                matched_sent_at=sent.sent_at,
                days_since_email=days,
                within_window=within,
                window_days=config.attribution_window_days,
            ),
            domain=domain,
            matched_email=matched_email,
            matched_sent_at=sent.sent_at,
            days_since_email=days,
            is_personal_domain=personal,
        )

    def _positive_reply(
        self,
        event: BusinessEvent,
        email: Optional[str],
        domain: Optional[str],
        sent: Optional[OutboundEmailRecord],
        personal: bool,
    ) -> MatchResult:
        sent_at = sent.sent_at if sent else None
        days = days_between(sent_at, event.event_time) if sent_at else None
        return MatchResult(
            match_kind=MatchKind.HARD_MATCH,
            within_window=True,
            match_reason=f"Positive reply from {email or domain} to outreach. ATTRIBUTED (replies are always within window)",
            domain=domain,
            matched_email=email,
            matched_sent_at=sent_at,
            days_since_email=days,
            is_personal_domain=personal,
        )


__all__ = ["EventMatcher", "build_match_reason"]
