"""Schema domain: facet definition and publishing."""

from dirgraph.schema.builder import required_mutable_string_attributes
from dirgraph.schema.builder import SchemaBuilder
from dirgraph.schema.org import build_org_schema
from dirgraph.schema.org import define_org_facets
from dirgraph.schema.org import org_schema_from_config

__all__ = [
    "SchemaBuilder",
    "build_org_schema",
    "define_org_facets",
    "org_schema_from_config",
    "required_mutable_string_attributes",
]
