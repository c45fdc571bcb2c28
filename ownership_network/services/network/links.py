from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from ownership_network.config import NetworkSettings, get_settings
from ownership_network.services.identifiers import only_digits
from ownership_network.services.network.lookup import RecordLookupClient, get_record_client


def dedupe_partners(partners: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce `{cpf_parcial, nome}` payloads to one entry per CPF (last one wins)."""
    by_cpf: Dict[str, Dict[str, Any]] = {}
    for p in partners:
        cpf = only_digits((p or {}).get("cpf_parcial"))
        if not cpf:
            continue
        by_cpf[cpf] = {"cpf_parcial": cpf, "nome": p.get("nome")}
    return list(by_cpf.values())


async def partner_links(
    cpf: str,
    reference_cnpj: Optional[str] = None,
    *,
    client: RecordLookupClient,
    limit: int = 12,
) -> List[Dict[str, Any]]:
    """Companies directly owned by a partner, excluding the reference company."""
    # ask for extra rows since the reference company may be among them
    companies = await client.get_companies_owned_by(cpf, limit * 2)
    out: List[Dict[str, Any]] = []
    for company in companies:
        cnpj = only_digits(company.cnpj)
        if not cnpj or (reference_cnpj and cnpj == reference_cnpj):
            continue
        out.append(
            {
                "empresa_vinculada_cnpj": cnpj,
                "empresa_vinculada_nome": company.name or cnpj,
                "grau_vinculo": 1,
                "tipo_vinculo": "direto",
            }
        )
        if len(out) >= limit:
            break
    return out


async def partner_networks(
    partners: Iterable[Dict[str, Any]],
    reference_cnpj: Optional[str] = None,
    *,
    client: Optional[RecordLookupClient] = None,
    settings: Optional[NetworkSettings] = None,
) -> List[Dict[str, Any]]:
    """List the direct company links of every distinct partner, concurrently."""
    settings = settings or get_settings()
    client = client or get_record_client(settings)
    reference = only_digits(reference_cnpj) or None
    unique = dedupe_partners(partners)

    async def one(p: Dict[str, Any]) -> Dict[str, Any]:
        links = await partner_links(
            p["cpf_parcial"], reference, client=client, limit=settings.max_links_per_partner
        )
        return {"socio_nome": p.get("nome") or p["cpf_parcial"], "vinculos": links}

    return list(await asyncio.gather(*(one(p) for p in unique)))
