"""Record lookup clients: the only way the builder reads company/partner data.

Two backends implement the same three read operations:

- `Neo4jRecordClient`: Cypher over `:Entity:Company` / `:Entity:Person` nodes
  linked by `(:Person)-[:OWNS {stake, role}]->(:Company)`.
- `RestRecordClient`: a PostgREST-style HTTP API exposing the `empresas`,
  `socios` and `empresa_socios` tables.

Both return None for a missing record and raise LookupTransientFailure when the
store itself fails. `get_companies_owned_by` always honours `limit`; callers use
that cap to bound fan-out from very connected people.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ownership_network.config import NetworkSettings, get_settings
from ownership_network.db.neo4j_connector import run_cypher
from ownership_network.exceptions import LookupTransientFailure
from ownership_network.services.network.types import (
    CompanyRecord,
    Address,
    CompanySummary,
    OwnerRecord,
    PersonRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPANIES_LIMIT = 10


class RecordLookupClient(Protocol):
    async def get_company(self, cnpj: str) -> Optional[CompanyRecord]:
        ...

    async def get_person(self, person_id: str) -> Optional[PersonRecord]:
        ...

    async def get_companies_owned_by(
        self, person_id: str, limit: int = DEFAULT_COMPANIES_LIMIT
    ) -> List[CompanySummary]:
        ...


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _address(value: Any) -> Address:
    if isinstance(value, (str, dict)):
        return value or None
    return None


class Neo4jRecordClient:
    """Reads records through the shared Neo4j driver.

    The driver is blocking, so every query runs in a worker thread.
    """

    COMPANY_QUERY = (
        "MATCH (c:Company {id: $id}) "
        "OPTIONAL MATCH (p:Person)-[r:OWNS]->(c) "
        "RETURN c.id AS cnpj, c.name AS name, c.trade_name AS trade_name, "
        "       c.status AS status, c.size AS size, c.address AS address, "
        "       collect(DISTINCT {id: p.id, tax_id: p.tax_id, name: p.name, role: r.role, stake: r.stake}) AS owners"
    )
    PERSON_QUERY = (
        "MATCH (p:Person) WHERE p.id = $id OR p.tax_id = $id "
        "RETURN p.id AS id, p.name AS name, p.tax_id AS tax_id, "
        "       p.qualification AS qualification, p.stake AS stake "
        "LIMIT 1"
    )
    OWNED_COMPANIES_QUERY = (
        "MATCH (p:Person)-[:OWNS]->(c:Company) WHERE p.id = $id OR p.tax_id = $id "
        "RETURN DISTINCT c.id AS cnpj, c.name AS name "
        "ORDER BY cnpj "
        "LIMIT $limit"
    )

    async def _query(self, operation: str, key: str, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(run_cypher, query, params)
        except Exception as exc:
            raise LookupTransientFailure(operation, key, exc) from exc

    async def get_company(self, cnpj: str) -> Optional[CompanyRecord]:
        rows = await self._query("get_company", cnpj, self.COMPANY_QUERY, {"id": cnpj})
        if not rows or not rows[0].get("cnpj"):
            return None
        row = rows[0]
        owners = [
            OwnerRecord(
                person_id=str(o["id"]),
                name=o.get("name"),
                qualification=o.get("role"),
                ownership_percentage=_to_float(o.get("stake")),
                tax_id=o.get("tax_id"),
            )
            for o in (row.get("owners") or [])
            if o.get("id")
        ]
        return CompanyRecord(
            cnpj=row["cnpj"],
            name=row.get("name"),
            trade_name=row.get("trade_name"),
            registration_status=row.get("status"),
            size=row.get("size"),
            address=row.get("address"),
            owners=owners,
        )

    async def get_person(self, person_id: str) -> Optional[PersonRecord]:
        rows = await self._query("get_person", person_id, self.PERSON_QUERY, {"id": person_id})
        if not rows:
            return None
        row = rows[0]
        return PersonRecord(
            id=str(row.get("id") or person_id),
            name=row.get("name"),
            tax_id=row.get("tax_id"),
            qualification=row.get("qualification"),
            ownership_percentage=_to_float(row.get("stake")),
        )

    async def get_companies_owned_by(
        self, person_id: str, limit: int = DEFAULT_COMPANIES_LIMIT
    ) -> List[CompanySummary]:
        rows = await self._query(
            "get_companies_owned_by", person_id, self.OWNED_COMPANIES_QUERY, {"id": person_id, "limit": int(limit)}
        )
        return [CompanySummary(cnpj=r["cnpj"], name=r.get("name")) for r in rows if r.get("cnpj")][:limit]


class RestRecordClient:
    """Reads records from a PostgREST endpoint (`/rest/v1/<table>`).

    Pass `client` to share an `httpx.AsyncClient` (tests inject one built on a
    MockTransport); otherwise a short-lived client is opened per request.
    """

    COMPANY_SELECT = (
        "cnpj,razao_social,nome_fantasia,situacao_cadastral,porte_empresa,endereco,"
        "empresa_socios(participacao,socios(id,nome,cpf_cnpj,qualificacao))"
    )

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})
        self._client = client

    async def _get(self, operation: str, key: str, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(url, params=params, headers=self.headers)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LookupTransientFailure(operation, key, exc) from exc
        if isinstance(data, dict):
            return [data]
        return data or []

    async def get_company(self, cnpj: str) -> Optional[CompanyRecord]:
        rows = await self._get(
            "get_company", cnpj, "empresas", {"select": self.COMPANY_SELECT, "cnpj": f"eq.{cnpj}", "limit": "1"}
        )
        if not rows:
            return None
        row = rows[0]
        owners: List[OwnerRecord] = []
        for link in row.get("empresa_socios") or []:
            socio = link.get("socios") or {}
            owner_id = socio.get("cpf_cnpj") or socio.get("id")
            if not owner_id:
                continue
            owners.append(
                OwnerRecord(
                    person_id=str(owner_id),
                    name=socio.get("nome"),
                    qualification=socio.get("qualificacao"),
                    ownership_percentage=_to_float(link.get("participacao")),
                    tax_id=socio.get("cpf_cnpj"),
                )
            )
        return CompanyRecord(
            cnpj=row.get("cnpj") or cnpj,
            name=row.get("razao_social"),
            trade_name=row.get("nome_fantasia"),
            registration_status=row.get("situacao_cadastral"),
            size=row.get("porte_empresa"),
            address=_address(row.get("endereco")),
            owners=owners,
        )

    async def get_person(self, person_id: str) -> Optional[PersonRecord]:
        rows = await self._get(
            "get_person",
            person_id,
            "socios",
            {"select": "*", "or": f"(cpf_cnpj.eq.{person_id},id.eq.{person_id})", "limit": "1"},
        )
        if not rows:
            return None
        row = rows[0]
        return PersonRecord(
            id=str(row.get("cpf_cnpj") or row.get("id") or person_id),
            name=row.get("nome"),
            tax_id=row.get("cpf_cnpj"),
            qualification=row.get("qualificacao"),
            ownership_percentage=_to_float(row.get("participacao")),
        )

    async def get_companies_owned_by(
        self, person_id: str, limit: int = DEFAULT_COMPANIES_LIMIT
    ) -> List[CompanySummary]:
        rows = await self._get(
            "get_companies_owned_by",
            person_id,
            "empresa_socios",
            {"select": "empresas(cnpj,razao_social)", "socio_id": f"eq.{person_id}", "limit": str(int(limit))},
        )
        out: List[CompanySummary] = []
        for item in rows:
            empresa = item.get("empresas") or {}
            if empresa.get("cnpj"):
                out.append(CompanySummary(cnpj=empresa["cnpj"], name=empresa.get("razao_social")))
        return out[:limit]


def get_record_client(settings: Optional[NetworkSettings] = None) -> RecordLookupClient:
    """Return the record client selected by RECORD_BACKEND (neo4j by default)."""
    settings = settings or get_settings()
    if settings.record_backend == "rest":
        if not settings.record_store_url:
            raise RuntimeError("RECORD_BACKEND=rest requires RECORD_STORE_URL (or SUPABASE_URL).")
        return RestRecordClient(settings.record_store_url, settings.record_store_key)
    if settings.record_backend != "neo4j":
        raise RuntimeError(f"Unknown RECORD_BACKEND '{settings.record_backend}'; use 'neo4j' or 'rest'.")
    return Neo4jRecordClient()
