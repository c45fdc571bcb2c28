"""Shared fakes for the network builder tests (no Neo4j or HTTP needed)."""
import asyncio
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from ownership_network.config import NetworkSettings
from ownership_network.exceptions import LookupTransientFailure
from ownership_network.services.network import reset_result_cache
from ownership_network.services.network.types import CompanyRecord, CompanySummary, OwnerRecord, PersonRecord


def cnpj(n: int) -> str:
    """A well-formed 14-digit CNPJ for fixture company number n."""
    return f"{n:08d}0001{n % 100:02d}"


def company(n: int, name: str, owners: Sequence[Tuple[str, Optional[float]]] = ()) -> CompanyRecord:
    return CompanyRecord(
        cnpj=cnpj(n),
        name=name,
        trade_name=name.split()[0],
        registration_status="ATIVA",
        size="ME",
        address="Rua A, 1",
        owners=[OwnerRecord(person_id=pid, qualification="Sócio-Administrador", ownership_percentage=pct) for pid, pct in owners],
    )


class FakeRecordClient:
    """In-memory record store.

    Companies own their owner lists; "companies owned by" is derived from them
    in insertion order. `fail` ids raise LookupTransientFailure; `delays` maps
    ids to seconds slept before answering.
    """

    def __init__(
        self,
        companies: Iterable[CompanyRecord] = (),
        persons: Dict[str, str] = None,
        *,
        fail: Iterable[str] = (),
        delays: Dict[str, float] = None,
        extra_owned: Dict[str, List[str]] = None,
    ):
        self.companies = {c.cnpj: c for c in companies}
        self.persons = dict(persons or {})
        self.fail = set(fail)
        self.delays = dict(delays or {})
        self.extra_owned = dict(extra_owned or {})
        self.calls: List[Tuple[str, str]] = []
        self.limits: List[int] = []

    async def _pause(self, key: str):
        if key in self.fail:
            raise LookupTransientFailure("fake", key)
        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)

    async def get_company(self, cnpj: str) -> Optional[CompanyRecord]:
        self.calls.append(("company", cnpj))
        await self._pause(cnpj)
        return self.companies.get(cnpj)

    async def get_person(self, person_id: str) -> Optional[PersonRecord]:
        self.calls.append(("person", person_id))
        await self._pause(person_id)
        name = self.persons.get(person_id)
        if name is None:
            return None
        return PersonRecord(id=person_id, name=name, tax_id=person_id, qualification="Sócio")

    async def get_companies_owned_by(self, person_id: str, limit: int = 10) -> List[CompanySummary]:
        self.calls.append(("owned", person_id))
        self.limits.append(limit)
        owned = [
            CompanySummary(cnpj=c.cnpj, name=c.name)
            for c in self.companies.values()
            if any(o.person_id == person_id for o in c.owners)
        ]
        owned += [CompanySummary(cnpj=x) for x in self.extra_owned.get(person_id, [])]
        return owned[:limit]

    def count(self, kind: str, key: str) -> int:
        return sum(1 for k, v in self.calls if k == kind and v == key)


@pytest.fixture(autouse=True)
def fresh_result_cache():
    reset_result_cache()
    yield
    reset_result_cache()


@pytest.fixture
def settings():
    return NetworkSettings(timeout_seconds=None, lookup_concurrency=4)
