"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading or YAML parsing; just plain defaults that can
be overridden at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass

from dirgraph.models.refs import ConsistencyLevel


@dataclass(frozen=True)
class DirectoryConfig:
    """Names used when creating the schema and the directory instance."""

    schema_name: str = "Organization_Demo"
    # User-defined version identifier for the published schema
    schema_version: str = "1.0"
    directory_name: str = "Cloud_Corp"


@dataclass(frozen=True)
class QueryConfig:
    """Traversal settings for the recursive query engine."""

    max_concurrency: int = 8
    timeout_seconds: float | None = 30.0
    # Topology reads follow writes closely; attribute reads tolerate lag
    topology_consistency: ConsistencyLevel = ConsistencyLevel.SERIALIZABLE
    attribute_consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL


@dataclass(frozen=True)
class IdentifierConfig:
    """Identifier policy for generated employee and office ids."""

    strategy: str = "sequential"
    random_upper_bound: int = 99999
    max_attempts: int = 5


@dataclass(frozen=True)
class Neo4jConfig:
    """Connection settings for the Neo4j-backed object store."""

    uri: str = "bolt://localhost:7687"
    database: str | None = None
