import asyncio

import pytest

from conftest import FakeRecordClient, cnpj, company
from ownership_network.config import NetworkSettings
from ownership_network.services.network import NodeKind, RelationshipKind, build_network
from ownership_network.services.network.traversal import NetworkTraversal


def run(coro):
    return asyncio.run(coro)


def node_map(result):
    return {n.id: n for n in result.graph.nodes}


def ownership_edges(result):
    return [e for e in result.graph.edges if e.relationship is RelationshipKind.OWNERSHIP]


def test_cyclic_ownership_terminates_with_each_node_once(settings):
    # C1 <- P1 -> C2 <- P2 -> C1 : people and companies point back at each other
    client = FakeRecordClient(
        [
            company(1, "Alpha Ltda", [("P1", 50.0), ("P2", 50.0)]),
            company(2, "Beta Ltda", [("P1", 30.0), ("P2", 70.0)]),
        ],
        {"P1": "Ana Souza", "P2": "Bruno Lima"},
    )
    result = run(build_network(cnpj(1), 4, client=client, settings=settings, use_cache=False))

    ids = [n.id for n in result.graph.nodes]
    assert sorted(ids) == sorted([cnpj(1), cnpj(2), "P1", "P2"])
    assert len(ids) == len(set(ids))
    assert client.count("company", cnpj(1)) == 1
    assert client.count("company", cnpj(2)) == 1
    assert result.partial is False


def test_degree_is_fixed_at_first_discovery(settings):
    # P1 owns the root (degree 2) and also shows up as owner of a degree-3 company
    client = FakeRecordClient(
        [
            company(1, "Root SA", [("P1", 100.0)]),
            company(2, "Second SA", [("P1", 10.0), ("P2", 90.0)]),
        ],
        {"P1": "Carla Dias", "P2": "Diego Reis"},
    )
    result = run(build_network(cnpj(1), 4, client=client, settings=settings, use_cache=False))
    nodes = node_map(result)

    assert nodes[cnpj(1)].degree == 1
    assert nodes["P1"].degree == 2
    assert nodes[cnpj(2)].degree == 3
    assert nodes["P2"].degree == 4
    # the already-known partner is still linked to the deeper company
    pairs = {(e.from_id, e.to_id) for e in ownership_edges(result)}
    assert ("P1", cnpj(2)) in pairs
    assert ("P2", cnpj(2)) in pairs


def test_ownership_edge_strength_emitted_once(settings):
    client = FakeRecordClient(
        [company(1, "Gamma Ltda", [("P1", 40.0), ("P2", None)])],
        {"P1": "Eva Melo", "P2": "Fabio Nunes"},
    )
    result = run(build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False))

    matching = [e for e in ownership_edges(result) if e.from_id == "P1" and e.to_id == cnpj(1)]
    assert len(matching) == 1
    assert matching[0].strength == pytest.approx(0.4)
    unknown = [e for e in ownership_edges(result) if e.from_id == "P2"]
    assert unknown[0].strength == 0.0


def test_ownership_edges_always_point_person_to_company(settings):
    client = FakeRecordClient(
        [
            company(1, "Root SA", [("P1", 60.0), ("P2", 40.0)]),
            company(2, "Other SA", [("P2", 100.0)]),
        ],
        {"P1": "Gil Prado", "P2": "Helena Prado"},
    )
    result = run(build_network(cnpj(1), 4, client=client, settings=settings, use_cache=False))
    nodes = node_map(result)

    for e in ownership_edges(result):
        assert nodes[e.from_id].kind is NodeKind.PERSON
        assert nodes[e.to_id].kind is NodeKind.COMPANY


def test_fan_out_cap_limits_companies_expanded_from_one_partner(settings):
    owned = [company(i, f"Empresa {i}", [("HUB", 1.0)]) for i in range(1, 26)]
    client = FakeRecordClient(owned, {"HUB": "Ivo Teles"})
    result = run(build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False))

    companies = [n for n in result.graph.nodes if n.kind is NodeKind.COMPANY]
    assert len(companies) <= 1 + settings.max_companies_per_person
    assert client.limits == [settings.max_companies_per_person]
    hub_edges = [e for e in ownership_edges(result) if e.from_id == "HUB"]
    assert len(hub_edges) <= 1 + settings.max_companies_per_person


class UnlimitedClient(FakeRecordClient):
    """A store that ignores the requested limit."""

    async def get_companies_owned_by(self, person_id, limit=10):
        return await super().get_companies_owned_by(person_id, 1000)


def test_fan_out_cap_holds_even_if_client_ignores_limit():
    client = UnlimitedClient(
        [company(1, "Root SA", [("HUB", 5.0)])],
        {"HUB": "Joana Paz"},
        extra_owned={"HUB": [cnpj(i) for i in range(100, 130)]},
    )
    traversal = NetworkTraversal(client, max_degree=3, companies_limit=5)
    ctx = run(traversal.run(cnpj(1)))

    # the first five listed include the root itself, so four new companies are
    # queued at degree 3; none exist in the store, so all four are skipped
    company_lookups = [v for k, v in client.calls if k == "company"]
    assert len(company_lookups) == 1 + 4
    assert len(ctx.skipped) == 4


def test_max_degree_one_returns_only_root_without_edges(settings):
    client = FakeRecordClient(
        [company(1, "Solo SA", [("P1", 100.0)])],
        {"P1": "Karla Rocha"},
    )
    result = run(build_network(cnpj(1), 1, client=client, settings=settings, use_cache=False))

    assert [n.id for n in result.graph.nodes] == [cnpj(1)]
    assert result.graph.edges == []
    assert client.count("person", "P1") == 0
    assert result.graph.stats["maxDegree"] == 1


def test_nodes_at_max_degree_are_not_expanded(settings):
    client = FakeRecordClient(
        [
            company(1, "Root SA", [("P1", 100.0)]),
            company(2, "Deep SA", [("P1", 50.0), ("P9", 50.0)]),
        ],
        {"P1": "Luis Faria", "P9": "Mara Costa"},
    )
    result = run(build_network(cnpj(1), 2, client=client, settings=settings, use_cache=False))

    assert set(node_map(result)) == {cnpj(1), "P1"}
    # P1 sits at the last level: its companies are never listed
    assert client.count("owned", "P1") == 0


def test_missing_root_returns_empty_graph(settings):
    client = FakeRecordClient([], {})
    result = run(build_network(cnpj(77), 3, client=client, settings=settings, use_cache=False))

    assert result.graph.nodes == []
    assert result.graph.edges == []
    assert result.graph.stats == {"totalNodes": 0, "empresas": 0, "socios": 0, "relacoes": 0, "maxDegree": 0}
    assert result.to_dict()["success"] is True


def test_root_lookup_failure_returns_empty_graph(settings):
    client = FakeRecordClient([company(1, "Root SA")], {}, fail=[cnpj(1)])
    result = run(build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False))

    assert result.graph.nodes == []
    assert result.partial is False


def test_failed_partner_is_skipped_and_traversal_continues(settings):
    client = FakeRecordClient(
        [
            company(1, "Root SA", [("BAD", 50.0), ("P1", 50.0)]),
            company(2, "Next SA", [("P1", 100.0)]),
        ],
        {"BAD": "Nina Alves", "P1": "Otavio Alves"},
        fail=["BAD"],
    )
    result = run(build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False))
    nodes = node_map(result)

    assert "BAD" not in nodes
    assert cnpj(2) in nodes
    # no edge may reference a node that is not in the graph
    assert all(e.from_id in nodes and e.to_id in nodes for e in result.graph.edges)


def test_result_is_deterministic_under_concurrent_lookups():
    companies = [
        company(1, "Root SA", [("P1", 25.0), ("P2", 25.0), ("P3", 25.0), ("P4", 25.0)]),
        company(2, "Two SA", [("P1", 100.0)]),
        company(3, "Three SA", [("P4", 100.0)]),
    ]
    persons = {"P1": "Paulo Reis", "P2": "Quiteria Sa", "P3": "Rui Sa", "P4": "Sara Reis"}
    # later partners answer first
    delays = {"P1": 0.04, "P2": 0.03, "P3": 0.02, "P4": 0.01}

    slow = FakeRecordClient(companies, persons, delays=delays)
    fast = FakeRecordClient(companies, persons)
    concurrent = run(NetworkTraversal(slow, max_degree=4, concurrency=4).run(cnpj(1)))
    sequential = run(NetworkTraversal(fast, max_degree=4, concurrency=1).run(cnpj(1)))

    assert [(n.id, n.degree) for n in concurrent.nodes.values()] == [
        (n.id, n.degree) for n in sequential.nodes.values()
    ]
    assert concurrent.edges == sequential.edges


def test_deadline_returns_partial_graph():
    client = FakeRecordClient(
        [company(1, "Root SA", [("P1", 100.0)])],
        {"P1": "Tania Luz"},
        delays={"P1": 1.0},
    )
    settings = NetworkSettings(timeout_seconds=0.05)
    result = run(build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False))

    assert result.partial is True
    assert [n.id for n in result.graph.nodes] == [cnpj(1)]
    assert result.to_dict()["metadata"]["partial"] is True


def test_cancel_event_stops_traversal_with_partial_flag(settings):
    client = FakeRecordClient(
        [company(1, "Root SA", [("P1", 100.0)])],
        {"P1": "Ulisses Mota"},
        delays={"P1": 1.0},
    )

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.ensure_future(
            build_network(cnpj(1), 3, client=client, settings=settings, use_cache=False, cancel_event=stop)
        )
        await asyncio.sleep(0.05)
        stop.set()
        return await task

    result = run(scenario())
    assert result.partial is True
    assert cnpj(1) in node_map(result)


def test_partial_results_are_not_cached():
    client = FakeRecordClient(
        [company(1, "Root SA", [("P1", 100.0)])],
        {"P1": "Vera Neves"},
        delays={"P1": 1.0},
    )
    settings = NetworkSettings(timeout_seconds=0.05)
    first = run(build_network(cnpj(1), 3, client=client, settings=settings))
    second = run(build_network(cnpj(1), 3, client=client, settings=settings))

    assert first.partial and second.partial
    assert second.cached is False


def test_complete_results_are_served_from_cache(settings):
    client = FakeRecordClient([company(1, "Root SA", [("P1", 100.0)])], {"P1": "Wagner Cruz"})
    first = run(build_network(cnpj(1), 2, client=client, settings=settings))
    second = run(build_network(cnpj(1), 2, client=client, settings=settings))

    assert first.cached is False
    assert second.cached is True
    assert client.count("company", cnpj(1)) == 1
    assert [n.id for n in second.graph.nodes] == [n.id for n in first.graph.nodes]
