"""Pydantic models for directory schemas, facets and attribute definitions.

A schema moves through three states: ``DEVELOPMENT`` (facets may still
be added), ``PUBLISHED`` (frozen, versioned) and ``APPLIED`` (bound to
exactly one directory, with an ARN scoped to it).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

from dirgraph.errors import SchemaError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ObjectKind(str, Enum):
    """Structural kind of the objects a facet is applied to."""

    NODE = "NODE"
    LEAF_NODE = "LEAF_NODE"
    INDEX = "INDEX"


class AttributeType(str, Enum):
    """Value type of an attribute."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    DATETIME = "DATETIME"
    BINARY = "BINARY"


class RequiredBehavior(str, Enum):
    REQUIRED_ALWAYS = "REQUIRED_ALWAYS"
    NOT_REQUIRED = "NOT_REQUIRED"


class Mutability(str, Enum):
    MUTABLE = "MUTABLE"
    IMMUTABLE = "IMMUTABLE"


class SchemaState(str, Enum):
    DEVELOPMENT = "development"
    PUBLISHED = "published"
    APPLIED = "applied"


_PYTHON_TYPES: dict[AttributeType, tuple[type, ...]] = {
    AttributeType.STRING: (str,),
    AttributeType.NUMBER: (int, float),
    AttributeType.BOOLEAN: (bool,),
    AttributeType.DATETIME: (datetime,),
    AttributeType.BINARY: (bytes,),
}


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


class AttributeDefinition(BaseModel):
    """One attribute declared on a facet."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    type: AttributeType = AttributeType.STRING
    required: RequiredBehavior = RequiredBehavior.NOT_REQUIRED
    mutability: Mutability = Mutability.MUTABLE

    @property
    def is_required(self) -> bool:
        return self.required is RequiredBehavior.REQUIRED_ALWAYS

    def accepts(self, value: object) -> bool:
        """Return ``True`` if *value* has this attribute's Python type."""
        # bool is a subclass of int
        if isinstance(value, bool) and self.type is not AttributeType.BOOLEAN:
            return False
        return isinstance(value, _PYTHON_TYPES[self.type])


class Facet(BaseModel):
    """A named type contract: object kind plus ordered attribute definitions."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1)
    kind: ObjectKind
    attributes: tuple[AttributeDefinition, ...] = ()

    def attribute(self, name: str) -> AttributeDefinition | None:
        for definition in self.attributes:
            if definition.name == name:
                return definition
        return None

    @property
    def required_attributes(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.attributes if a.is_required)


class Schema(BaseModel):
    """A named collection of facets in one lifecycle state."""

    model_config = {"frozen": True}

    name: str
    arn: str
    state: SchemaState
    version: str | None = None
    facets: tuple[Facet, ...] = ()

    def facet(self, name: str) -> Facet:
        """Return the facet called *name* or raise ``SchemaError``."""
        for facet in self.facets:
            if facet.name == name:
                return facet
        msg = f"Facet {name!r} is not defined in schema {self.name!r}"
        raise SchemaError(msg)

    def has_facet(self, name: str) -> bool:
        return any(facet.name == name for facet in self.facets)

    def applied_to(self, directory_arn: str) -> Schema:
        """Return the applied variant of this published schema."""
        if self.state is not SchemaState.PUBLISHED:
            msg = f"Only published schemas can be applied, got {self.state.value}"
            raise SchemaError(msg)
        return self.model_copy(
            update={
                "state": SchemaState.APPLIED,
                "arn": f"{directory_arn}/schema/{self.name}/{self.version}",
            }
        )

    def as_json(self) -> str:
        """Return the schema document as indented JSON."""
        return self.model_dump_json(indent=2)
