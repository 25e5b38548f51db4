"""
Claim ledger: last successful claim time per recipient address.

The ledger owns the claim records and the per-address locks that make
check-dispatch-record a single critical section. Storage sits behind the
ClaimStore protocol; the relayer ships an in-memory store, so records
live for the lifetime of the process only.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Protocol

import structlog

logger = structlog.get_logger()


class ClaimStore(Protocol):
    """Keyed storage for claim timestamps."""

    async def get(self, key: str) -> Optional[float]:
        ...

    async def set(self, key: str, value: float) -> None:
        ...


class InMemoryClaimStore:
    """Process-local ClaimStore backed by a dict."""

    def __init__(self) -> None:
        self._records: dict[str, float] = {}

    async def get(self, key: str) -> Optional[float]:
        return self._records.get(key)

    async def set(self, key: str, value: float) -> None:
        self._records[key] = value

    def __len__(self) -> int:
        return len(self._records)


class ClaimLedger:
    """Records successful claims and serializes work per address."""

    def __init__(self, store: Optional[ClaimStore] = None):
        self.store = store if store is not None else InMemoryClaimStore()
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @staticmethod
    def _key(address: str) -> str:
        # Checksum and lowercase spellings of one address share a record.
        return address.lower()

    async def record_claim(self, address: str, timestamp: float) -> None:
        """Upsert the last successful claim time for ``address``."""
        await self.store.set(self._key(address), timestamp)
        logger.debug("claim_recorded", address=address, timestamp=timestamp)

    async def last_claim_of(self, address: str) -> Optional[float]:
        return await self.store.get(self._key(address))

    async def has_claimed(self, address: str) -> bool:
        return await self.last_claim_of(address) is not None

    @asynccontextmanager
    async def locked(self, address: str) -> AsyncIterator[None]:
        """Hold the exclusive lock for ``address``."""
        key = self._key(address)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]
