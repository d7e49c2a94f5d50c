"""Object store protocol: the only boundary to persisted directory state.

Every operation is scoped by a directory ARN. Reads take a per-call
``ConsistencyLevel``; stores never retry on staleness.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from typing import runtime_checkable

from dirgraph.errors import FacetAttributeError
from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeKeyAndValue
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import ConsistencyLevel
from dirgraph.models.refs import DirectoryHandle
from dirgraph.models.refs import IndexAttachment
from dirgraph.models.refs import ObjectRef
from dirgraph.models.refs import RangeMode
from dirgraph.models.schema import Facet
from dirgraph.models.schema import Schema


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for directory object stores.

    ``InMemoryObjectStore`` is the reference implementation;
    ``Neo4jObjectStore`` persists to a Neo4j database.
    """

    # ----- Directory lifecycle -----

    async def create_directory(self, name: str, schema: Schema) -> DirectoryHandle: ...

    async def disable_directory(self, directory_arn: str) -> None: ...

    async def delete_directory(self, directory_arn: str) -> None: ...

    async def delete_schema(self, schema_arn: str) -> None: ...

    # ----- Writes -----

    async def create_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        facet: str,
        attributes: Sequence[AttributeKeyAndValue] = (),
    ) -> str: ...

    async def attach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        child: ObjectRef,
    ) -> str: ...

    async def detach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
    ) -> str: ...

    # ----- Reads -----

    async def list_children(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.SERIALIZABLE,
    ) -> dict[str, str]: ...

    async def list_attributes(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[AttributeKeyAndValue]: ...

    async def get_applied_facets(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[str]: ...

    async def list_parent_paths(self, directory_arn: str, obj: ObjectRef) -> set[str]: ...

    # ----- Indexes -----

    async def create_index(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        keys: Sequence[AttributeKey],
        *,
        unique: bool = True,
    ) -> str: ...

    async def attach_to_index(
        self,
        directory_arn: str,
        index: ObjectRef,
        target: ObjectRef,
    ) -> None: ...

    async def query_index_range(
        self,
        directory_arn: str,
        index: ObjectRef,
        key: AttributeKey,
        start: AttributeValue | None,
        end: AttributeValue | None,
        start_mode: RangeMode = RangeMode.INCLUSIVE,
        end_mode: RangeMode = RangeMode.INCLUSIVE,
    ) -> list[IndexAttachment]: ...


def in_range(
    value: AttributeValue,
    start: AttributeValue | None,
    end: AttributeValue | None,
    start_mode: RangeMode,
    end_mode: RangeMode,
) -> bool:
    """Evaluate one indexed value against a range.

    ``FIRST`` on the start bound and ``LAST`` on the end bound are
    unbounded; the bound value is ignored for those modes.
    """
    if start_mode is RangeMode.LAST or end_mode is RangeMode.FIRST:
        return False
    try:
        if start_mode is RangeMode.INCLUSIVE and value < start:
            return False
        if start_mode is RangeMode.EXCLUSIVE and value <= start:
            return False
        if end_mode is RangeMode.INCLUSIVE and value > end:
            return False
        if end_mode is RangeMode.EXCLUSIVE and value >= end:
            return False
    except TypeError:
        # Values of a different type than the bounds never match
        return False
    return True


def validate_link_name(link_name: str) -> str:
    if not link_name or "/" in link_name or link_name.startswith("$"):
        msg = f"Invalid link name: {link_name!r}"
        raise ValueError(msg)
    return link_name


def validate_attributes(
    facet: Facet,
    attributes: Sequence[AttributeKeyAndValue],
) -> dict[AttributeKey, AttributeValue]:
    """Check *attributes* against the facet contract and return them keyed."""
    facet_name = facet.name
    values: dict[AttributeKey, AttributeValue] = {}
    for item in attributes:
        if item.key.facet != facet_name:
            msg = f"Attribute {item.key} does not belong to applied facet {facet_name!r}"
            raise FacetAttributeError(msg)
        definition = facet.attribute(item.key.name)
        if definition is None:
            msg = f"Attribute {item.key} is not declared on facet {facet_name!r}"
            raise FacetAttributeError(msg)
        if not definition.accepts(item.value):
            msg = (
                f"Attribute {item.key} expects {definition.type.value}, "
                f"got {type(item.value).__name__}"
            )
            raise FacetAttributeError(msg)
        if item.key in values:
            msg = f"Attribute {item.key} is assigned twice"
            raise FacetAttributeError(msg)
        values[item.key] = item.value

    missing = [
        name
        for name in facet.required_attributes
        if AttributeKey(facet=facet_name, name=name) not in values
    ]
    if missing:
        msg = f"Missing required attributes on {facet_name!r}: {', '.join(missing)}"
        raise FacetAttributeError(msg)
    return values
