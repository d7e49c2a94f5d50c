"""Models domain: schema definitions, references and org vocabulary."""

from __future__ import annotations

from dirgraph.models.org import EmployeeRole
from dirgraph.models.org import GroupType
from dirgraph.models.org import OfficeType
from dirgraph.models.refs import attribute
from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeKeyAndValue
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import ConsistencyLevel
from dirgraph.models.refs import DirectoryHandle
from dirgraph.models.refs import IndexAttachment
from dirgraph.models.refs import ObjectRef
from dirgraph.models.refs import RangeMode
from dirgraph.models.refs import ROOT_PATH
from dirgraph.models.schema import AttributeDefinition
from dirgraph.models.schema import AttributeType
from dirgraph.models.schema import Facet
from dirgraph.models.schema import Mutability
from dirgraph.models.schema import ObjectKind
from dirgraph.models.schema import RequiredBehavior
from dirgraph.models.schema import Schema
from dirgraph.models.schema import SchemaState

__all__ = [
    # Org vocabulary
    "EmployeeRole",
    "GroupType",
    "OfficeType",
    # References
    "AttributeKey",
    "AttributeKeyAndValue",
    "AttributeValue",
    "ConsistencyLevel",
    "DirectoryHandle",
    "IndexAttachment",
    "ObjectRef",
    "ROOT_PATH",
    "RangeMode",
    "attribute",
    # Schema
    "AttributeDefinition",
    "AttributeType",
    "Facet",
    "Mutability",
    "ObjectKind",
    "RequiredBehavior",
    "Schema",
    "SchemaState",
]
