import asyncio
import os

import pytest

from ownership_network.config import NetworkSettings
from ownership_network.db.neo4j_connector import run_cypher
from ownership_network.services.network import Neo4jRecordClient, build_network

# Integration-style tests require Neo4j; skip unless TEST_NEO4J=1
pytestmark = pytest.mark.skipif(os.getenv("TEST_NEO4J") != "1", reason="Neo4j not available for integration test")

ROOT = "90000001000190"
OTHER = "90000002000190"


@pytest.fixture
def seeded():
    run_cypher(
        """
        MERGE (c1:Entity:Company {id: $root}) SET c1.name = 'Integração Alfa Ltda', c1.status = 'ATIVA'
        MERGE (c2:Entity:Company {id: $other}) SET c2.name = 'Integração Beta Ltda'
        MERGE (p1:Entity:Person {id: '90000000001'}) SET p1.name = 'Carla Moura', p1.tax_id = '90000000001'
        MERGE (p2:Entity:Person {id: '90000000002'}) SET p2.name = 'Davi Moura', p2.tax_id = '90000000002'
        MERGE (p1)-[r1:OWNS]->(c1) SET r1.stake = 70, r1.role = 'Sócio-Administrador'
        MERGE (p2)-[r2:OWNS]->(c1) SET r2.stake = 30
        MERGE (p1)-[r3:OWNS]->(c2) SET r3.stake = 100
        """,
        {"root": ROOT, "other": OTHER},
        read_only=False,
    )
    yield
    run_cypher(
        "MATCH (n:Entity) WHERE n.id IN $ids DETACH DELETE n",
        {"ids": [ROOT, OTHER, "90000000001", "90000000002"]},
        read_only=False,
    )


def test_build_network_against_neo4j(seeded):
    settings = NetworkSettings(timeout_seconds=None)
    result = asyncio.run(build_network(ROOT, 3, client=Neo4jRecordClient(), settings=settings, use_cache=False))

    ids = {n.id for n in result.graph.nodes}
    assert ids == {ROOT, OTHER, "90000000001", "90000000002"}
    assert result.graph.stats["maxDegree"] == 3
    kin = [e for e in result.graph.edges if e.relationship.value == "parente"]
    assert len(kin) == 1
