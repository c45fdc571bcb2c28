import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response

from ownership_network.exceptions import InvalidIdentifier
from ownership_network.models.network import (
    ErrorResponse,
    NetworkResponse,
    PartnerLinksRequest,
    PartnerLinksResponse,
    RelativesResponse,
)
from ownership_network.services.network import build_network, find_relatives, partner_networks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["genealogy"])

_ERRORS = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


@router.get("/genealogy", response_model=NetworkResponse, responses=_ERRORS)
async def api_get_genealogy(
    cnpj: Optional[str] = Query(None, description="Root company CNPJ (punctuation is ignored)"),
    degree: Optional[str] = Query(None, description="Relationship degrees to explore, 1-4 (default 3)"),
    companyId: Optional[str] = Query(None, description="Same as cnpj"),
    maxDegree: Optional[str] = Query(None, description="Same as degree"),
):
    """Return the company/partner network around a CNPJ.

    - 1st degree: the root company
    - 2nd degree: its partners
    - 3rd degree: other companies of those partners
    - 4th degree: partners of the 3rd-degree companies
    """
    cnpj = cnpj or companyId
    degree = degree or maxDegree
    try:
        result = await build_network(cnpj, degree)
    except InvalidIdentifier as exc:
        raise HTTPException(status_code=400, detail=exc.to_dict())
    except Exception as exc:
        logger.exception("Failed to build genealogy network for %s", cnpj)
        raise HTTPException(
            status_code=500,
            detail={"success": False, "error": "Erro ao buscar rede genealógica", "details": str(exc)},
        )
    return result.to_dict()


@router.get(
    "/genealogy-relatives",
    response_model=RelativesResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
async def api_get_relatives(cpf: Optional[str] = Query(None, description="Partner CPF, at least 6 digits")):
    """Rank co-partners of a person by how likely they are relatives (heuristic)."""
    try:
        data = await find_relatives(cpf)
    except InvalidIdentifier as exc:
        raise HTTPException(status_code=400, detail=exc.to_dict())
    except Exception as exc:
        logger.exception("Failed to look up relatives for %s", cpf)
        raise HTTPException(
            status_code=500,
            detail={"success": False, "error": "Erro interno ao buscar parentes", "details": str(exc)},
        )
    if data is None:
        raise HTTPException(status_code=404, detail="Sócio não encontrado")
    return {"success": True, **data}


@router.post("/vinculos", response_model=PartnerLinksResponse, responses=_ERRORS)
async def api_post_partner_links(payload: PartnerLinksRequest):
    """List the companies directly linked to each partner in the payload."""
    partners = [p.model_dump() for p in payload.socios]
    if not any((p.get("cpf_parcial") or "").strip() for p in partners):
        raise HTTPException(status_code=400, detail="Envie ao menos um sócio na requisição.")
    try:
        redes = await partner_networks(partners, payload.empresaCnpj)
    except Exception as exc:
        logger.exception("Failed to list partner links")
        raise HTTPException(
            status_code=500,
            detail={"success": False, "error": "Erro interno ao buscar vínculos.", "details": str(exc)},
        )
    return {"success": True, "redes": redes}


@router.options("/{path:path}", include_in_schema=False)
async def api_options(path: str):
    """Answer bare OPTIONS requests; real CORS preflights are handled by the middleware."""
    return Response(status_code=200, headers={"Allow": "GET, POST, OPTIONS"})
