from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Literal


class NetworkNodeOut(BaseModel):
    id: str
    type: Literal["company", "person"]
    label: str
    degree: int = Field(..., ge=1, le=4, description="BFS level of first discovery")
    data: Dict[str, Any] = Field(default_factory=dict)


class NetworkEdgeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str
    relationship: Literal["socio", "parente", "mesmo_endereco"]
    strength: float = Field(..., ge=0.0, le=1.0)


class NetworkStats(BaseModel):
    totalNodes: int
    empresas: int
    socios: int
    relacoes: int
    maxDegree: int


class NetworkMetadata(BaseModel):
    timestamp: Optional[str] = None
    cached: bool = False
    partial: bool = Field(False, description="True when the traversal was stopped early")
    skipped: List[str] = Field(default_factory=list, description="Ids whose lookup failed or found nothing")


class NetworkResponse(BaseModel):
    success: bool = True
    cnpj: str
    companyId: str
    nodes: List[NetworkNodeOut]
    edges: List[NetworkEdgeOut]
    stats: NetworkStats
    metadata: NetworkMetadata


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None


class PartnerIn(BaseModel):
    cpf_parcial: Optional[str] = Field(None, description="CPF digits (may be partial)")
    nome: Optional[str] = None


class PartnerLinksRequest(BaseModel):
    socios: List[PartnerIn] = Field(default_factory=list)
    empresaCnpj: Optional[str] = Field(None, description="Reference company excluded from the results")


class PartnerLink(BaseModel):
    empresa_vinculada_cnpj: str
    empresa_vinculada_nome: str
    grau_vinculo: int = 1
    tipo_vinculo: Literal["direto", "indireto_socio", "indireto_parente"] = "direto"


class PartnerNetwork(BaseModel):
    socio_nome: str
    vinculos: List[PartnerLink]


class PartnerLinksResponse(BaseModel):
    success: bool = True
    redes: List[PartnerNetwork]


class RelativeOut(BaseModel):
    cpf_parcial_relacionado: str
    nome_relacionado: str
    tipo_descoberta: str
    confiabilidade: int = Field(..., ge=0, le=95)


class RelativesResponse(BaseModel):
    success: bool = True
    socio: Dict[str, Any]
    parentes: List[RelativeOut]
