"""
In-process per-tenant guards.

Used by the trigger surface so that two requests for the same tenant do not
both start an attribution run or a billing sync.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class TenantBusyError(RuntimeError):
    def __init__(self, tenant_id: str, operation: str):
        super().__init__(f"{operation} already in progress for tenant: {tenant_id}")
        self.tenant_id = tenant_id
        self.operation = operation


class TenantLocks:
    def __init__(self, operation: str):
        self._operation = operation
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, tenant_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tenant_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[tenant_id] = lock
            return lock

    @contextmanager
    def hold(self, tenant_id: str, *, wait: bool = True) -> Iterator[None]:
        """
        Hold the tenant's lock for the duration of the block.

        With ``wait=False`` a busy tenant raises TenantBusyError immediately.
        """

        lock = self._lock_for(tenant_id)
        if not lock.acquire(blocking=wait):
            raise TenantBusyError(tenant_id, self._operation)
        try:
            yield
        finally:
            lock.release()


__all__ = ["TenantBusyError", "TenantLocks"]
