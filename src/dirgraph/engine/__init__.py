"""Engine domain: graph builder, query engine and index engine."""

from dirgraph.engine.builder import CrossLink
from dirgraph.engine.builder import GraphBuilder
from dirgraph.engine.builder import ObjectRecord
from dirgraph.engine.builder import PopulateResult
from dirgraph.identifiers import build_identifier_policy
from dirgraph.identifiers import IdentifierPolicy
from dirgraph.identifiers import RandomIdentifierPolicy
from dirgraph.identifiers import SequentialIdentifierPolicy
from dirgraph.engine.index import IndexBatchResult
from dirgraph.engine.index import IndexEngine
from dirgraph.engine.predicates import all_of
from dirgraph.engine.predicates import any_of
from dirgraph.engine.predicates import attribute_in
from dirgraph.engine.predicates import has_facet
from dirgraph.engine.predicates import ObjectView
from dirgraph.engine.predicates import Predicate
from dirgraph.engine.query import QueryEngine

__all__ = [
    "CrossLink",
    "GraphBuilder",
    "IdentifierPolicy",
    "IndexBatchResult",
    "IndexEngine",
    "ObjectRecord",
    "ObjectView",
    "PopulateResult",
    "Predicate",
    "QueryEngine",
    "RandomIdentifierPolicy",
    "SequentialIdentifierPolicy",
    "all_of",
    "any_of",
    "attribute_in",
    "build_identifier_policy",
    "has_facet",
]
