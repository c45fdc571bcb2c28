"""Ownership network service package.

Routers import from here; the submodules hold one concern each:
record lookups, caches, traversal, kinship inference and graph assembly.
"""
from .types import (
    NodeKind,
    RelationshipKind,
    Node,
    Edge,
    CompanyAttributes,
    PersonAttributes,
    CompanyRecord,
    PersonRecord,
    OwnerRecord,
    CompanySummary,
)
from .lookup import RecordLookupClient, Neo4jRecordClient, RestRecordClient, get_record_client
from .cache import TraversalCache, ResultCache
from .traversal import NetworkTraversal, TraversalContext
from .kinship import infer_kinship, score_relatives
from .assembler import AssembledGraph, assemble_graph, compute_stats
from .builder import NetworkResult, build_network, get_result_cache, reset_result_cache
from .relatives import find_relatives
from .links import partner_networks

__all__ = [
    # types
    'NodeKind','RelationshipKind','Node','Edge','CompanyAttributes','PersonAttributes',
    'CompanyRecord','PersonRecord','OwnerRecord','CompanySummary',
    # record lookups
    'RecordLookupClient','Neo4jRecordClient','RestRecordClient','get_record_client',
    # caches
    'TraversalCache','ResultCache',
    # traversal
    'NetworkTraversal','TraversalContext',
    # inference
    'infer_kinship','score_relatives',
    # assembly
    'AssembledGraph','assemble_graph','compute_stats',
    # entry points
    'NetworkResult','build_network','get_result_cache','reset_result_cache',
    'find_relatives','partner_networks',
]
