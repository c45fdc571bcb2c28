from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

from ownership_network.services.network.types import Edge, Node, NodeKind, RelationshipKind

logger = logging.getLogger(__name__)


@dataclass
class AssembledGraph:
    nodes: List[Node]
    edges: List[Edge]
    stats: Dict[str, int]
    partial: bool = False
    dropped_edges: int = 0
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "stats": dict(self.stats),
        }


def compute_stats(nodes: List[Node], edges: List[Edge]) -> Dict[str, int]:
    return {
        "totalNodes": len(nodes),
        "empresas": sum(1 for n in nodes if n.kind is NodeKind.COMPANY),
        "socios": sum(1 for n in nodes if n.kind is NodeKind.PERSON),
        "relacoes": len(edges),
        "maxDegree": max((n.degree for n in nodes), default=0),
    }


def assemble_graph(nodes: Iterable[Node], edges: Iterable[Edge], *, partial: bool = False) -> AssembledGraph:
    """Deduplicate nodes and edges and attach summary statistics.

    The first occurrence of a node id wins. Edges are keyed by
    (relationship, from, to), kinship edges without direction. Edges that point
    at a node missing from the graph (a lookup that failed or never ran) are
    dropped so every edge endpoint can be resolved by the caller.
    """
    node_map: Dict[str, Node] = {}
    for n in nodes:
        node_map.setdefault(n.id, n)

    out_edges: List[Edge] = []
    seen = set()
    dropped = 0
    for e in edges:
        src = node_map.get(e.from_id)
        dst = node_map.get(e.to_id)
        if src is None or dst is None:
            dropped += 1
            continue
        if e.relationship is RelationshipKind.OWNERSHIP and (
            src.kind is not NodeKind.PERSON or dst.kind is not NodeKind.COMPANY
        ):
            dropped += 1
            continue
        k = e.key()
        if k in seen:
            continue
        seen.add(k)
        out_edges.append(e)

    if dropped:
        logger.debug("Dropped %d edges with unresolved or mistyped endpoints", dropped)

    node_list = list(node_map.values())
    return AssembledGraph(
        nodes=node_list,
        edges=out_edges,
        stats=compute_stats(node_list, out_edges),
        partial=partial,
        dropped_edges=dropped,
    )
