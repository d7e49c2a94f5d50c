"""Store domain: the object store protocol and its implementations.

The Neo4j implementation is loaded lazily so the in-memory store can be
imported without pulling in the driver.
"""

from __future__ import annotations

from importlib import import_module

__all__ = [
    "InMemoryObjectStore",
    "Neo4jObjectStore",
    "ObjectStore",
    "init_schema",
]


_EXPORT_TO_MODULE = {
    "InMemoryObjectStore": "dirgraph.store.memory",
    "Neo4jObjectStore": "dirgraph.store.graph",
    "ObjectStore": "dirgraph.store.base",
    "init_schema": "dirgraph.store.graph_schema",
}


def __getattr__(name: str):
    module_name = _EXPORT_TO_MODULE.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(module_name)
    return getattr(module, name)
