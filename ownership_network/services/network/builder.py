"""Entry point for building an ownership network around a company.

    from ownership_network.services.network import build_network
    result = await build_network("12.345.678/0001-90", max_degree=3)
    result.to_dict()  # {success, cnpj, nodes, edges, stats, metadata}

Finished (non-partial) results are kept in a short-lived ResultCache so that
repeated requests for the same company and degree skip the record store.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ownership_network.config import NetworkSettings, get_settings
from ownership_network.services.identifiers import normalize_cnpj, parse_degree
from ownership_network.services.network.assembler import AssembledGraph, assemble_graph
from ownership_network.services.network.cache import ResultCache
from ownership_network.services.network.kinship import infer_kinship
from ownership_network.services.network.lookup import RecordLookupClient, get_record_client
from ownership_network.services.network.traversal import NetworkTraversal

logger = logging.getLogger(__name__)


@dataclass
class NetworkResult:
    cnpj: str
    graph: AssembledGraph
    cached: bool = False
    timestamp: Optional[str] = None

    @property
    def partial(self) -> bool:
        return self.graph.partial

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "cnpj": self.cnpj,
            "companyId": self.cnpj,
            **self.graph.to_dict(),
            "metadata": {
                "timestamp": self.timestamp,
                "cached": self.cached,
                "partial": self.partial,
                "skipped": list(self.graph.skipped),
            },
        }


_result_cache: Optional[ResultCache[AssembledGraph]] = None


def get_result_cache(settings: Optional[NetworkSettings] = None) -> ResultCache[AssembledGraph]:
    global _result_cache
    if _result_cache is None:
        settings = settings or get_settings()
        _result_cache = ResultCache(max_size=settings.cache_max_entries, ttl=settings.cache_ttl_seconds)
    return _result_cache


def reset_result_cache() -> None:
    global _result_cache
    _result_cache = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def build_network(
    company_id: str,
    max_degree: Any = None,
    *,
    client: Optional[RecordLookupClient] = None,
    settings: Optional[NetworkSettings] = None,
    use_cache: bool = True,
    cancel_event: Optional[asyncio.Event] = None,
) -> NetworkResult:
    """Discover companies and partners around `company_id` up to `max_degree` hops.

    Raises InvalidIdentifier for a malformed CNPJ. A root the record store does
    not know yields an empty graph rather than an error.
    """
    cnpj = normalize_cnpj(company_id)
    degree = parse_degree(max_degree)
    settings = settings or get_settings()
    cache = get_result_cache(settings) if use_cache else None
    key = (cnpj, degree)

    if cache is not None:
        hit = cache.get(key)
        if hit is not None:
            logger.info("Network for %s (degree %d) served from cache", cnpj, degree)
            return NetworkResult(cnpj=cnpj, graph=hit, cached=True, timestamp=_now_iso())

    logger.info("Building network: cnpj=%s degree=%d", cnpj, degree)
    traversal = NetworkTraversal(
        client or get_record_client(settings),
        max_degree=degree,
        companies_limit=settings.max_companies_per_person,
        concurrency=settings.lookup_concurrency,
        timeout=settings.timeout_seconds,
        cancel_event=cancel_event,
    )
    ctx = await traversal.run(cnpj)

    nodes = list(ctx.nodes.values())
    kinship = infer_kinship(nodes, ctx.edges, confidence=settings.kinship_confidence)
    graph = assemble_graph(nodes, ctx.edges + kinship, partial=ctx.partial)
    graph.skipped = list(ctx.skipped)
    logger.info("Network built for %s: %s", cnpj, graph.stats)

    # Graphs missing nodes because the store failed are not worth keeping.
    if cache is not None and not graph.partial and not ctx.failed:
        cache.set(key, graph)
    return NetworkResult(cnpj=cnpj, graph=graph, cached=False, timestamp=_now_iso())
