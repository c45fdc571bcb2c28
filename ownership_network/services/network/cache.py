"""Caches used while building networks.

`TraversalCache` memoizes the three record lookups for a single traversal.
There is no eviction: it is dropped with the traversal, and records are assumed
not to change while one runs.

`ResultCache` keeps finished responses for a few minutes across requests. It
sits in front of the builder, never inside the traversal.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from ownership_network.services.network.lookup import RecordLookupClient
from ownership_network.services.network.types import CompanyRecord, CompanySummary, PersonRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TraversalCache:
    """Memoizing wrapper over a RecordLookupClient.

    Concurrent first requests for the same key share one in-flight lookup.
    Failed lookups are forgotten so that a later request may retry them.
    """

    def __init__(self, client: RecordLookupClient, companies_limit: int):
        self.client = client
        self.companies_limit = companies_limit
        self._companies: Dict[str, "asyncio.Future[Optional[CompanyRecord]]"] = {}
        self._persons: Dict[str, "asyncio.Future[Optional[PersonRecord]]"] = {}
        self._owned: Dict[str, "asyncio.Future[List[CompanySummary]]"] = {}
        self.hits = 0
        self.misses = 0

    async def _memo(self, table: Dict[str, asyncio.Future], key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        fut = table.get(key)
        if fut is None:
            self.misses += 1
            fut = asyncio.ensure_future(factory())
            table[key] = fut
        else:
            self.hits += 1
            logger.debug("traversal cache hit for %s", key)
        try:
            return await fut
        except BaseException:
            if table.get(key) is fut:
                del table[key]
            raise

    async def get_company(self, cnpj: str) -> Optional[CompanyRecord]:
        return await self._memo(self._companies, cnpj, lambda: self.client.get_company(cnpj))

    async def get_person(self, person_id: str) -> Optional[PersonRecord]:
        return await self._memo(self._persons, person_id, lambda: self.client.get_person(person_id))

    async def get_companies_owned_by(self, person_id: str) -> List[CompanySummary]:
        companies = await self._memo(
            self._owned,
            person_id,
            lambda: self.client.get_companies_owned_by(person_id, self.companies_limit),
        )
        # A client that ignores the limit still cannot widen the fan-out.
        return list(companies)[: self.companies_limit]

    def stats(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "companies": len(self._companies),
            "persons": len(self._persons),
            "owned_lists": len(self._owned),
        }


class ResultCache(Generic[T]):
    """Thread-safe LRU cache whose entries expire after `ttl` seconds."""

    def __init__(self, max_size: int = 256, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self._data: "OrderedDict[Hashable, Tuple[float, T]]" = OrderedDict()
        self._lock = Lock()
        self._max_size = max(1, max_size)
        self._ttl = ttl
        self._clock = clock
        self.hits = 0
        self.misses = 0
        self.sets = 0

    def get(self, key: Hashable) -> Optional[T]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._data[key]
                self.misses += 1
                return None
            self._data.move_to_end(key)
            self.hits += 1
            return value

    def set(self, key: Hashable, value: T) -> None:
        if self._ttl <= 0:
            return
        with self._lock:
            self._data[key] = (self._clock() + self._ttl, value)
            self._data.move_to_end(key)
            self.sets += 1
            while len(self._data) > self._max_size:
                self._data.popitem(last=False)

    def __len__(self) -> int:
        return len(self._data)

    def metrics(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "size": len(self._data),
            "hit_rate": f"{(self.hits / total) * 100:.2f}%" if total else "0%",
        }
