"""Facet definitions for the organisation-chart schema.

Groups, regions and offices are ``NODE`` objects (one parent each).
Employees are ``LEAF_NODE`` objects so they can sit under both a group
and an office.
"""

from __future__ import annotations

from dirgraph.config import DirectoryConfig
from dirgraph.models import org
from dirgraph.models.schema import ObjectKind
from dirgraph.models.schema import Schema
from dirgraph.schema.builder import required_mutable_string_attributes
from dirgraph.schema.builder import SchemaBuilder


def define_org_facets(builder: SchemaBuilder) -> None:
    builder.define_facet(
        org.GROUP_FACET,
        ObjectKind.NODE,
        required_mutable_string_attributes(org.GROUP_TYPE),
    )
    builder.define_facet(org.REGION_FACET, ObjectKind.NODE)
    builder.define_facet(
        org.OFFICE_FACET,
        ObjectKind.NODE,
        required_mutable_string_attributes(
            org.OFFICE_ID, org.OFFICE_LOCATION, org.OFFICE_TYPE
        ),
    )
    builder.define_facet(
        org.EMPLOYEE_FACET,
        ObjectKind.LEAF_NODE,
        required_mutable_string_attributes(
            org.EMPLOYEE_ID, org.EMPLOYEE_NAME, org.EMPLOYEE_ROLE
        ),
    )


def build_org_schema(name: str, version: str) -> Schema:
    """Define the four org facets and publish them as *version*."""
    builder = SchemaBuilder(name)
    define_org_facets(builder)
    return builder.publish(version)


def org_schema_from_config(config: DirectoryConfig | None = None) -> Schema:
    config = config or DirectoryConfig()
    return build_org_schema(config.schema_name, config.schema_version)
