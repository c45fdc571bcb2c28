"""Runtime settings read from the environment.

A `.env` file at the project root is honoured for variables that are not
already set, the same best-effort loader the Neo4j connector uses.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from ownership_network.db.neo4j_connector import load_env_from_file


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class NetworkSettings:
    # Companies fetched per person. Keeps fan-out from very connected people
    # bounded, so for them the graph is a sample, not a full enumeration.
    max_companies_per_person: int = 10
    lookup_concurrency: int = 8
    timeout_seconds: Optional[float] = 25.0
    kinship_confidence: float = 0.7
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 256
    record_backend: str = "neo4j"
    record_store_url: Optional[str] = None
    record_store_key: Optional[str] = None
    # Partner-links listing ("vinculos") uses its own, slightly larger cap.
    max_links_per_partner: int = 12
    # Relatives are searched across every company the person owns, up to this bound.
    max_relative_companies: int = 100


def get_settings() -> NetworkSettings:
    """Build settings from the environment (after loading .env if present)."""
    load_env_from_file()
    timeout = _env_float("NETWORK_TIMEOUT_SECONDS", 25.0)
    return NetworkSettings(
        max_companies_per_person=_env_int("NETWORK_MAX_COMPANIES_PER_PERSON", 10),
        lookup_concurrency=_env_int("NETWORK_LOOKUP_CONCURRENCY", 8),
        timeout_seconds=timeout if timeout > 0 else None,
        kinship_confidence=min(max(_env_float("KINSHIP_CONFIDENCE", 0.7), 0.0), 1.0),
        cache_ttl_seconds=_env_float("NETWORK_CACHE_TTL_SECONDS", 300.0),
        cache_max_entries=_env_int("NETWORK_CACHE_MAX_ENTRIES", 256),
        record_backend=(os.getenv("RECORD_BACKEND") or "neo4j").strip().lower(),
        record_store_url=os.getenv("RECORD_STORE_URL") or os.getenv("SUPABASE_URL"),
        record_store_key=os.getenv("RECORD_STORE_KEY") or os.getenv("SUPABASE_SERVICE_KEY"),
        max_links_per_partner=_env_int("NETWORK_MAX_LINKS_PER_PARTNER", 12),
        max_relative_companies=_env_int("NETWORK_MAX_RELATIVE_COMPANIES", 100),
    )
