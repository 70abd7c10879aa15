"""Service-level errors surfaced to the API and CLI."""

from __future__ import annotations


class NotFoundError(LookupError):
    """A referenced row (job, period, line item, domain) does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class BillingConfigMissingError(LookupError):
    """The tenant has no billing configuration (or no contract start date)."""

    def __init__(self, tenant_id: str):
        super().__init__(f"No billing configuration for tenant: {tenant_id}")
        self.tenant_id = tenant_id


__all__ = ["NotFoundError", "BillingConfigMissingError"]
