"""Probable-kinship heuristics between partners.

Both functions here are guesses, not findings: a shared surname plus a shared
company is common among unrelated people with frequent surnames (Silva,
Santos, Oliveira...). Results are exploratory annotations and must not be
presented as verified family relationships.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Set

from ownership_network.services.identifiers import mask_cpf, only_digits
from ownership_network.services.network.types import Edge, Node, NodeKind, RelationshipKind

logger = logging.getLogger(__name__)

DEFAULT_KINSHIP_CONFIDENCE = 0.7

SAME_SURNAME_SCORE = 45
SAME_CPF_PREFIX_SCORE = 25
SHARED_COMPANY_SCORE = 10
MAX_RELATIVE_SCORE = 95
CPF_PREFIX_LENGTH = 6


def surname_of(label: Optional[str]) -> str:
    """Last whitespace-delimited token, lowercased; '' when there is none."""
    parts = (label or "").split()
    return parts[-1].lower() if parts else ""


def infer_kinship(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    confidence: float = DEFAULT_KINSHIP_CONFIDENCE,
) -> List[Edge]:
    """Propose a `parente` edge for each pair of partners sharing a surname and a company.

    Runs once over the finished graph. Owned companies come from the ownership
    edges already emitted. Quadratic in the number of partners, which the
    degree bound and the per-partner company cap keep small.
    """
    people = [n for n in nodes if n.kind is NodeKind.PERSON]
    owned: Dict[str, Set[str]] = {}
    for e in edges:
        if e.relationship is RelationshipKind.OWNERSHIP:
            owned.setdefault(e.from_id, set()).add(e.to_id)

    inferred: List[Edge] = []
    for p1, p2 in combinations(people, 2):
        s1 = surname_of(p1.label)
        if not s1 or s1 != surname_of(p2.label):
            continue
        if owned.get(p1.id, set()) & owned.get(p2.id, set()):
            inferred.append(Edge(p1.id, p2.id, RelationshipKind.INFERRED_KINSHIP, confidence))
            logger.info("Possible kinship: %s <-> %s", p1.label, p2.label)
    return inferred


def _upper_surname(name: Optional[str]) -> str:
    # single-token names carry no surname
    parts = (name or "").strip().split()
    return parts[-1].upper() if len(parts) > 1 else ""


@dataclass
class _Candidate:
    cpf: str
    name: str
    score: int = 0
    reasons: List[str] = field(default_factory=list)


def score_relatives(subject: Dict[str, Any], candidates: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rank partners who share a company with `subject` by how likely they are relatives.

    `subject` is `{cpf_parcial, nome_socio}`; each candidate row is
    `{cpf_parcial, nome_socio, empresa_cnpj}`, one row per shared company.
    Same surname adds 45, an equal 6-digit CPF prefix adds 25 and every shared
    company row adds 10; the total is capped at 95.
    """
    subject_cpf = only_digits(subject.get("cpf_parcial"))
    subject_surname = _upper_surname(subject.get("nome_socio"))
    subject_prefix = subject_cpf[:CPF_PREFIX_LENGTH]

    by_cpf: Dict[str, _Candidate] = {}
    for cand in candidates:
        cpf = only_digits(cand.get("cpf_parcial"))
        if not cpf or cpf == subject_cpf:
            continue
        name = cand.get("nome_socio") or "Sócio não identificado"
        score = 0
        reasons: List[str] = []

        surname = _upper_surname(name)
        if subject_surname and surname == subject_surname:
            score += SAME_SURNAME_SCORE
            reasons.append(f"Mesmo sobrenome ({subject_surname})")
        if subject_prefix and cpf[:CPF_PREFIX_LENGTH] == subject_prefix:
            score += SAME_CPF_PREFIX_SCORE
            reasons.append("CPF com prefixo igual")
        score += SHARED_COMPANY_SCORE
        reasons.append(f"Empresa compartilhada {cand.get('empresa_cnpj')}")

        entry = by_cpf.setdefault(cpf, _Candidate(cpf=cpf, name=name))
        entry.score = min(entry.score + score, MAX_RELATIVE_SCORE)
        entry.reasons.extend(reasons)

    ranked = sorted(by_cpf.values(), key=lambda c: c.score, reverse=True)
    return [
        {
            "cpf_parcial_relacionado": mask_cpf(c.cpf),
            "nome_relacionado": c.name,
            "tipo_descoberta": "; ".join(c.reasons),
            "confiabilidade": c.score,
        }
        for c in ranked
    ]
