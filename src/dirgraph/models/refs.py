"""Reference and value types exchanged with the object store.

An ``ObjectRef`` selects an object either by materialized path
(``/organization/research``) or by store-assigned id (``$<id>``).
Attribute values are keyed by ``(facet, name)`` via ``AttributeKey``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ConsistencyLevel(str, Enum):
    """Per-call read guarantee."""

    SERIALIZABLE = "SERIALIZABLE"
    EVENTUAL = "EVENTUAL"


class RangeMode(str, Enum):
    """How a range bound treats the bound value."""

    INCLUSIVE = "INCLUSIVE"
    EXCLUSIVE = "EXCLUSIVE"
    FIRST = "FIRST"
    LAST = "LAST"


# ---------------------------------------------------------------------------
# Object references
# ---------------------------------------------------------------------------

ROOT_PATH = "/"
_ID_PREFIX = "$"

AttributeValue = str | int | float | bool | datetime | bytes


class ObjectRef(BaseModel):
    """A selector for one object in a directory."""

    model_config = {"frozen": True}

    selector: str = Field(description="Materialized path or '$'-prefixed object id.")

    @classmethod
    def path(cls, path: str) -> ObjectRef:
        return cls(selector=path)

    @classmethod
    def object_id(cls, object_id: str) -> ObjectRef:
        return cls(selector=f"{_ID_PREFIX}{object_id}")

    @property
    def is_id(self) -> bool:
        return self.selector.startswith(_ID_PREFIX)

    @property
    def id(self) -> str | None:
        """The object id for id selectors, ``None`` for path selectors."""
        if self.is_id:
            return self.selector[len(_ID_PREFIX) :]
        return None

    def __str__(self) -> str:
        return self.selector


def split_path(path: str) -> list[str]:
    """Split a materialized path into its link names.

    ``"/"`` yields an empty list; empty segments are ignored.
    """
    return [segment for segment in path.split("/") if segment]


def join_path(parent_path: str, link_name: str) -> str:
    """Append *link_name* to *parent_path*, collapsing the root slash."""
    if parent_path == ROOT_PATH:
        return f"/{link_name}"
    return f"{parent_path.rstrip('/')}/{link_name}"


def last_segment(path: str) -> str:
    """Return the trailing link name of a materialized path."""
    return path[path.rfind("/") + 1 :]


def parent_of(path: str) -> str:
    """Return the parent path of *path* (``"/"`` for top-level objects)."""
    head = path[: path.rfind("/")]
    return head or ROOT_PATH


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------


class AttributeKey(BaseModel):
    """Identifies an attribute as declared on a facet."""

    model_config = {"frozen": True}

    facet: str
    name: str

    def __str__(self) -> str:
        return f"{self.facet}.{self.name}"


class AttributeKeyAndValue(BaseModel):
    """One typed attribute value assigned to an object."""

    model_config = {"frozen": True}

    key: AttributeKey
    value: AttributeValue


def attribute(facet: str, name: str, value: AttributeValue) -> AttributeKeyAndValue:
    """Shorthand for building an ``AttributeKeyAndValue``."""
    return AttributeKeyAndValue(key=AttributeKey(facet=facet, name=name), value=value)


# ---------------------------------------------------------------------------
# Index results
# ---------------------------------------------------------------------------


class IndexAttachment(BaseModel):
    """An index entry: the indexed values and the object they point to."""

    model_config = {"frozen": True}

    indexed_attributes: tuple[AttributeKeyAndValue, ...] = ()
    object_id: str

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef.object_id(self.object_id)


class DirectoryHandle(BaseModel):
    """Identifiers returned when a directory is created from a schema."""

    model_config = {"frozen": True}

    directory_arn: str
    applied_schema_arn: str
    name: str
