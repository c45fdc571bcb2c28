from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class NodeKind(str, Enum):
    COMPANY = "company"
    PERSON = "person"


class RelationshipKind(str, Enum):
    OWNERSHIP = "socio"
    INFERRED_KINSHIP = "parente"
    # Reserved for an address-matching heuristic; nothing emits it yet.
    SAME_ADDRESS = "mesmo_endereco"


# --- Records returned by the record store ---

# Free text, or the structured {logradouro, cidade, uf, ...} object the store keeps.
Address = Optional[Union[str, Dict[str, Any]]]


@dataclass
class OwnerRecord:
    """A declared owner as listed on a company's registration."""
    person_id: str
    name: Optional[str] = None
    qualification: Optional[str] = None
    ownership_percentage: Optional[float] = None
    # CPF/CNPJ when the store keys people by something else
    tax_id: Optional[str] = None


@dataclass
class CompanyRecord:
    cnpj: str
    name: Optional[str] = None
    trade_name: Optional[str] = None
    registration_status: Optional[str] = None
    size: Optional[str] = None
    address: Address = None
    owners: List[OwnerRecord] = field(default_factory=list)


@dataclass
class PersonRecord:
    id: str
    name: Optional[str] = None
    tax_id: Optional[str] = None
    qualification: Optional[str] = None
    ownership_percentage: Optional[float] = None


@dataclass
class CompanySummary:
    cnpj: str
    name: Optional[str] = None


# --- Graph elements ---

@dataclass(frozen=True)
class CompanyAttributes:
    cnpj: str
    trade_name: Optional[str] = None
    registration_status: Optional[str] = None
    size: Optional[str] = None
    address: Address = None

    @classmethod
    def from_record(cls, record: CompanyRecord) -> "CompanyAttributes":
        return cls(
            cnpj=record.cnpj,
            trade_name=record.trade_name,
            registration_status=record.registration_status,
            size=record.size,
            address=record.address,
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "cnpj": self.cnpj,
            "nome_fantasia": self.trade_name,
            "situacao_cadastral": self.registration_status,
            "porte": self.size,
            "endereco": self.address,
        }


@dataclass(frozen=True)
class PersonAttributes:
    tax_id: Optional[str] = None
    qualification: Optional[str] = None
    ownership_percentage: Optional[float] = None

    @classmethod
    def from_record(cls, record: PersonRecord) -> "PersonAttributes":
        return cls(
            tax_id=record.tax_id,
            qualification=record.qualification,
            ownership_percentage=record.ownership_percentage,
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "cpf_cnpj": self.tax_id,
            "qualificacao": self.qualification,
            "participacao": self.ownership_percentage,
        }


NodeAttributes = Union[CompanyAttributes, PersonAttributes]


@dataclass(frozen=True)
class Node:
    """A discovered vertex; `degree` is the BFS level of first discovery."""
    id: str
    kind: NodeKind
    label: str
    degree: int
    attributes: NodeAttributes

    def __post_init__(self):
        expected = CompanyAttributes if self.kind is NodeKind.COMPANY else PersonAttributes
        if not isinstance(self.attributes, expected):
            raise TypeError(f"{self.kind.value} node {self.id} needs {expected.__name__}")

    @classmethod
    def company(cls, node_id: str, record: CompanyRecord, degree: int) -> "Node":
        label = record.name or record.trade_name or node_id
        return cls(node_id, NodeKind.COMPANY, label, degree, CompanyAttributes.from_record(record))

    @classmethod
    def person(cls, node_id: str, record: PersonRecord, degree: int) -> "Node":
        return cls(node_id, NodeKind.PERSON, record.name or node_id, degree, PersonAttributes.from_record(record))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "label": self.label,
            "degree": self.degree,
            "data": self.attributes.to_wire(),
        }


@dataclass(frozen=True)
class Edge:
    from_id: str
    to_id: str
    relationship: RelationshipKind
    strength: float

    @classmethod
    def ownership(cls, person_id: str, company_id: str, percentage: Optional[float]) -> "Edge":
        """Person -> company edge weighted by the owned share (0 when unknown)."""
        strength = (percentage or 0.0) / 100.0
        return cls(person_id, company_id, RelationshipKind.OWNERSHIP, min(max(strength, 0.0), 1.0))

    def key(self) -> tuple:
        if self.relationship is RelationshipKind.INFERRED_KINSHIP:
            # kinship is symmetric
            return (self.relationship, *sorted((self.from_id, self.to_id)))
        return (self.relationship, self.from_id, self.to_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "relationship": self.relationship.value,
            "strength": self.strength,
        }
