from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional

from ownership_network.config import NetworkSettings, get_settings
from ownership_network.services.identifiers import normalize_cpf_fragment, only_digits
from ownership_network.services.network.kinship import score_relatives
from ownership_network.services.network.lookup import RecordLookupClient, get_record_client
from ownership_network.services.network.types import OwnerRecord

logger = logging.getLogger(__name__)

_DIGITS_ONLY = re.compile(r"^[\d.\-/\s]+$")


def _owner_cpf(owner: OwnerRecord) -> str:
    """CPF digits of a co-owner, or "" when the store only has an opaque key."""
    if owner.tax_id:
        return only_digits(owner.tax_id)
    if _DIGITS_ONLY.match(owner.person_id or ""):
        return only_digits(owner.person_id)
    return ""


async def find_relatives(
    cpf: str,
    *,
    client: Optional[RecordLookupClient] = None,
    settings: Optional[NetworkSettings] = None,
) -> Optional[Dict[str, Any]]:
    """Rank the co-partners of a person by how likely they are relatives.

    Returns None when the person is unknown, otherwise
    `{"socio": {cpf_parcial, nome_socio}, "parentes": [...]}`. Store failures
    propagate; this is a single-subject query, not a traversal.
    """
    cpf_digits = normalize_cpf_fragment(cpf)
    settings = settings or get_settings()
    client = client or get_record_client(settings)

    person = await client.get_person(cpf_digits)
    if person is None:
        return None
    subject = {"cpf_parcial": cpf_digits, "nome_socio": person.name}

    companies = await client.get_companies_owned_by(cpf_digits, settings.max_relative_companies)
    if not companies:
        return {"socio": subject, "parentes": []}

    records = await asyncio.gather(*(client.get_company(c.cnpj) for c in companies))
    # the subject may appear under its store key, its tax id or the queried digits
    subject_keys = {cpf_digits, person.id, only_digits(person.tax_id)} - {""}
    candidates: List[Dict[str, Any]] = []
    for record in records:
        if record is None:
            continue
        for owner in record.owners:
            cpf = _owner_cpf(owner)
            if not cpf or owner.person_id in subject_keys or cpf in subject_keys:
                continue
            candidates.append(
                {
                    "cpf_parcial": cpf,
                    "nome_socio": owner.name,
                    "empresa_cnpj": record.cnpj,
                }
            )

    parentes = score_relatives(subject, candidates)
    logger.info("Relatives for %s: %d candidates, %d ranked", cpf_digits, len(candidates), len(parentes))
    return {"socio": subject, "parentes": parentes}
