"""Breadth-first discovery of the company/partner graph around a root CNPJ.

Levels alternate between companies (odd degrees) and people (even degrees):

- degree 1: the root company
- degree 2: its partners
- degree 3: other companies owned by those partners
- degree 4: the partners of degree-3 companies

The queue is drained one level at a time. All lookups of a level run
concurrently (bounded by a semaphore), then their results are applied in queue
order, so the degree and order of every node is the same as a sequential FIFO
walk would give. Nothing is expanded past `max_degree`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set, Union

from ownership_network.exceptions import InvalidIdentifier
from ownership_network.services.identifiers import MAX_DEGREE, MIN_DEGREE, normalize_cnpj, normalize_person_id
from ownership_network.services.network.cache import TraversalCache
from ownership_network.services.network.lookup import DEFAULT_COMPANIES_LIMIT, RecordLookupClient
from ownership_network.services.network.types import (
    CompanyRecord,
    CompanySummary,
    Edge,
    Node,
    NodeKind,
    PersonRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkItem:
    id: str
    kind: NodeKind
    degree: int


@dataclass
class _Fetched:
    record: Optional[Union[CompanyRecord, PersonRecord]] = None
    owned: List[CompanySummary] = field(default_factory=list)
    failed: bool = False


@dataclass
class TraversalContext:
    """Everything one traversal owns; created per call and thrown away after."""
    cache: TraversalCache
    max_degree: int
    deadline: Optional[float] = None
    visited: Set[str] = field(default_factory=set)
    queued: Set[str] = field(default_factory=set)
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    partial: bool = False

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def add_node(self, node: Node) -> None:
        # first discovery wins
        self.nodes.setdefault(node.id, node)


class NetworkTraversal:
    def __init__(
        self,
        client: RecordLookupClient,
        *,
        max_degree: int = 3,
        companies_limit: int = DEFAULT_COMPANIES_LIMIT,
        concurrency: int = 8,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.client = client
        self.max_degree = min(max(int(max_degree), MIN_DEGREE), MAX_DEGREE)
        self.companies_limit = max(0, int(companies_limit))
        self.concurrency = max(1, int(concurrency))
        self.timeout = timeout
        self.cancel_event = cancel_event

    def new_context(self) -> TraversalContext:
        deadline = time.monotonic() + self.timeout if self.timeout else None
        return TraversalContext(
            cache=TraversalCache(self.client, self.companies_limit),
            max_degree=self.max_degree,
            deadline=deadline,
        )

    async def run(self, root_cnpj: str) -> TraversalContext:
        """Walk the graph from `root_cnpj`; always returns, possibly partial."""
        root = normalize_cnpj(root_cnpj)
        ctx = self.new_context()
        sem = asyncio.Semaphore(self.concurrency)
        queue: Deque[WorkItem] = deque()
        self._enqueue(ctx, queue, root, NodeKind.COMPANY, 1)

        while queue and queue[0].degree <= ctx.max_degree:
            if self._should_stop(ctx):
                ctx.partial = True
                break
            degree = queue[0].degree
            level: List[WorkItem] = []
            while queue and queue[0].degree == degree:
                item = queue.popleft()
                if item.id in ctx.visited:
                    continue
                ctx.visited.add(item.id)
                level.append(item)

            results = await self._fetch_level(ctx, level, sem)
            for item, fetched in zip(level, results):
                if fetched is None:
                    # lookup did not finish before the traversal was stopped
                    continue
                self._apply(ctx, queue, item, fetched)
            if ctx.partial:
                break

        logger.info(
            "Traversal from %s finished: %d nodes, %d edges, %d skipped, partial=%s, cache=%s",
            root,
            len(ctx.nodes),
            len(ctx.edges),
            len(ctx.skipped),
            ctx.partial,
            ctx.cache.stats(),
        )
        return ctx

    def _should_stop(self, ctx: TraversalContext) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        remaining = ctx.remaining()
        return remaining is not None and remaining <= 0

    def _enqueue(self, ctx: TraversalContext, queue: Deque[WorkItem], node_id: str, kind: NodeKind, degree: int) -> None:
        if node_id in ctx.visited or node_id in ctx.queued:
            return
        ctx.queued.add(node_id)
        queue.append(WorkItem(node_id, kind, degree))

    async def _fetch_item(self, ctx: TraversalContext, item: WorkItem, sem: asyncio.Semaphore) -> _Fetched:
        """Look up one work item. Lookup errors mean "skip this node", never abort."""
        try:
            if item.kind is NodeKind.COMPANY:
                async with sem:
                    return _Fetched(record=await ctx.cache.get_company(item.id))
            async with sem:
                person = await ctx.cache.get_person(item.id)
            if person is None or item.degree >= ctx.max_degree:
                return _Fetched(record=person)
        except Exception as exc:
            logger.warning("Lookup of %s %s failed, skipping node: %s", item.kind.value, item.id, exc)
            return _Fetched(failed=True)

        try:
            async with sem:
                owned = await ctx.cache.get_companies_owned_by(item.id)
        except Exception as exc:
            logger.warning("Could not list companies of partner %s, not expanding: %s", item.id, exc)
            owned = []
        return _Fetched(record=person, owned=owned)

    async def _fetch_level(
        self, ctx: TraversalContext, level: List[WorkItem], sem: asyncio.Semaphore
    ) -> List[Optional[_Fetched]]:
        tasks = [asyncio.ensure_future(self._fetch_item(ctx, item, sem)) for item in level]
        pending = set(tasks)
        stop_waiter = asyncio.ensure_future(self.cancel_event.wait()) if self.cancel_event is not None else None
        try:
            while pending:
                if self._should_stop(ctx):
                    break
                waiters = set(pending)
                if stop_waiter is not None:
                    waiters.add(stop_waiter)
                done, _ = await asyncio.wait(waiters, timeout=ctx.remaining(), return_when=asyncio.FIRST_COMPLETED)
                if not done:
                    break
                pending -= done
        finally:
            if stop_waiter is not None:
                stop_waiter.cancel()
            if pending:
                ctx.partial = True
                logger.warning("Traversal stopped with %d lookups outstanding; returning partial graph", len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
        return [t.result() if t.done() and not t.cancelled() else None for t in tasks]

    def _apply(self, ctx: TraversalContext, queue: Deque[WorkItem], item: WorkItem, fetched: _Fetched) -> None:
        record = fetched.record
        if record is None:
            ctx.skipped.append(item.id)
            if fetched.failed:
                ctx.failed.append(item.id)
            else:
                logger.warning("%s %s not found, skipping", item.kind.value, item.id)
            return

        expand = item.degree < ctx.max_degree
        if item.kind is NodeKind.COMPANY:
            ctx.add_node(Node.company(item.id, record, item.degree))
            for owner in record.owners:
                try:
                    owner_id = normalize_person_id(owner.person_id)
                except InvalidIdentifier:
                    continue
                known = ctx.nodes.get(owner_id)
                if known is not None and known.kind is not NodeKind.PERSON:
                    continue
                if expand:
                    self._enqueue(ctx, queue, owner_id, NodeKind.PERSON, item.degree + 1)
                # Past the last level only partners already in the graph get an
                # edge; nobody new is looked up.
                if expand or known is not None:
                    ctx.edges.append(Edge.ownership(owner_id, item.id, owner.ownership_percentage))
            return

        ctx.add_node(Node.person(item.id, record, item.degree))
        if not expand:
            return
        # Ownership edges for these companies are emitted when each company is
        # processed, never here.
        for company in fetched.owned[: self.companies_limit]:
            try:
                cnpj = normalize_cnpj(company.cnpj)
            except InvalidIdentifier:
                logger.debug("Ignoring malformed CNPJ %r owned by %s", company.cnpj, item.id)
                continue
            self._enqueue(ctx, queue, cnpj, NodeKind.COMPANY, item.degree + 1)
