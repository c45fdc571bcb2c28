import logging
import os
from typing import Any, Dict, List, Optional, Tuple

try:
    from neo4j import GraphDatabase, READ_ACCESS, WRITE_ACCESS
except ImportError as _import_exc:
    GraphDatabase = None
    READ_ACCESS = WRITE_ACCESS = None
    _neo4j_import_exc = _import_exc

logger = logging.getLogger(__name__)

_driver = None
_database: Optional[str] = None


def get_driver():
    """Return the shared Neo4j driver, creating it on first use."""
    global _driver, _database
    if GraphDatabase is None:
        raise RuntimeError(
            "The 'neo4j' driver is not installed; run `pip install -e .` "
            f"(import error: {_neo4j_import_exc!r})"
        )
    if _driver is None:
        uri, user, pwd, database = _get_neo4j_config()
        try:
            _driver = GraphDatabase.driver(uri, auth=(user, pwd))
        except Exception as exc:
            raise RuntimeError(f"Could not create a Neo4j driver for '{uri}': {exc}") from exc
        _database = database
        logger.info("Neo4j driver created for %s (database=%s)", uri, database or "default")
    return _driver


def close_driver():
    global _driver
    if _driver is not None:
        _driver.close()
        _driver = None
        logger.info("Neo4j driver closed")


def run_cypher(query: str, parameters: Optional[Dict[str, Any]] = None, *, read_only: bool = True) -> List[Dict[str, Any]]:
    """Run one Cypher statement and return its records as plain dicts.

    Sessions are opened in read mode unless `read_only=False`, so lookups can be
    served by cluster followers. NEO4J_DATABASE selects a non-default database.
    """
    driver = get_driver()
    mode = READ_ACCESS if read_only else WRITE_ACCESS
    with driver.session(database=_database, default_access_mode=mode) as session:
        return [record.data() for record in session.run(query, parameters or {})]


def load_env_from_file(path: Optional[str] = None):
    """Copy KEY=value lines from the project's .env into unset environment variables."""
    if path is None:
        path = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
    path = os.path.abspath(path)
    if not os.path.isfile(path):
        return
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.readlines()
    except OSError as exc:
        logger.debug("Ignoring unreadable .env file %s: %s", path, exc)
        return
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = (part.strip() for part in line.split("=", 1))
        if key.startswith("export "):
            key = key[len("export "):].strip()
        if key and not os.environ.get(key):
            os.environ[key] = value.strip('"').strip("'")


def _get_neo4j_config() -> Tuple[str, str, str, Optional[str]]:
    """(uri, user, password, database) from the environment; the password is required."""
    load_env_from_file()
    pwd = os.getenv("NEO4J_PASSWORD")
    if not pwd:
        raise RuntimeError(
            "NEO4J_PASSWORD is not set. Define NEO4J_URI, NEO4J_USER and NEO4J_PASSWORD "
            "(and optionally NEO4J_DATABASE) in the environment or in a .env file at the project root."
        )
    return (
        os.getenv("NEO4J_URI") or "bolt://localhost:7687",
        os.getenv("NEO4J_USER") or "neo4j",
        pwd,
        os.getenv("NEO4J_DATABASE") or None,
    )
