"""In-memory object store with full directory semantics.

Used as the reference implementation of ``ObjectStore`` and as the
store behind the unit tests. All writes go through a single
``asyncio.Lock``; reads observe the latest committed state regardless
of the requested consistency level, but every call and its consistency
level are recorded in ``calls`` (the most recent ``call_log_size`` of
them) so callers can be checked against the level they asked for.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from dirgraph.errors import CardinalityError
from dirgraph.errors import ConflictError
from dirgraph.errors import DirectoryError
from dirgraph.errors import FacetAttributeError
from dirgraph.errors import NotFoundError
from dirgraph.errors import NotTraversableError
from dirgraph.errors import SchemaError
from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeKeyAndValue
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import ConsistencyLevel
from dirgraph.models.refs import DirectoryHandle
from dirgraph.models.refs import IndexAttachment
from dirgraph.models.refs import join_path
from dirgraph.models.refs import ObjectRef
from dirgraph.models.refs import RangeMode
from dirgraph.models.refs import ROOT_PATH
from dirgraph.models.refs import split_path
from dirgraph.models.schema import ObjectKind
from dirgraph.models.schema import Schema
from dirgraph.models.schema import SchemaState
from dirgraph.store.base import in_range
from dirgraph.store.base import validate_attributes
from dirgraph.store.base import validate_link_name


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Internal records
# ---------------------------------------------------------------------------


@dataclass
class _IndexEntry:
    values: tuple[AttributeValue, ...]
    target_id: str


@dataclass
class _Object:
    id: str
    kind: ObjectKind
    facets: tuple[str, ...] = ()
    attributes: dict[AttributeKey, AttributeValue] = field(default_factory=dict)
    children: dict[str, str] = field(default_factory=dict)
    parents: list[tuple[str, str]] = field(default_factory=list)
    # Index objects only
    unique: bool = False
    keys: tuple[AttributeKey, ...] = ()
    entries: list[_IndexEntry] = field(default_factory=list)


@dataclass
class _Directory:
    arn: str
    name: str
    schema: Schema
    root_id: str
    objects: dict[str, _Object]
    enabled: bool = True


# ---------------------------------------------------------------------------
# InMemoryObjectStore
# ---------------------------------------------------------------------------


class InMemoryObjectStore:
    """Dict-backed ``ObjectStore``.

    *latency* adds an ``asyncio.sleep`` before every call, which lets
    tests exercise concurrent fan-out and traversal timeouts. Only the
    last *call_log_size* calls are kept in ``calls``.
    """

    def __init__(self, *, latency: float = 0.0, call_log_size: int = 1000) -> None:
        self._latency = latency
        self._lock = asyncio.Lock()
        self._schemas: dict[str, Schema] = {}
        self._directories: dict[str, _Directory] = {}
        self.calls: deque[tuple[str, ConsistencyLevel | None]] = deque(
            maxlen=call_log_size
        )

    # ----- Directory lifecycle -----

    async def create_directory(self, name: str, schema: Schema) -> DirectoryHandle:
        await self._enter("create_directory")
        if schema.state is not SchemaState.PUBLISHED:
            msg = f"Directory {name!r} needs a published schema, got {schema.state.value}"
            raise SchemaError(msg)
        async with self._lock:
            arn = f"arn:dirgraph:directory/{_new_id()}"
            applied = schema.applied_to(arn)
            root = _Object(id=_new_id(), kind=ObjectKind.NODE)
            self._schemas[schema.arn] = schema
            self._directories[arn] = _Directory(
                arn=arn,
                name=name,
                schema=applied,
                root_id=root.id,
                objects={root.id: root},
            )
        return DirectoryHandle(directory_arn=arn, applied_schema_arn=applied.arn, name=name)

    async def disable_directory(self, directory_arn: str) -> None:
        await self._enter("disable_directory")
        async with self._lock:
            directory = self._directories.get(directory_arn)
            if directory is None:
                msg = f"Directory not found: {directory_arn}"
                raise NotFoundError(msg)
            directory.enabled = False

    async def delete_directory(self, directory_arn: str) -> None:
        await self._enter("delete_directory")
        async with self._lock:
            directory = self._directories.get(directory_arn)
            if directory is None:
                msg = f"Directory not found: {directory_arn}"
                raise NotFoundError(msg)
            if directory.enabled:
                msg = f"Directory {directory_arn} must be disabled before deletion"
                raise DirectoryError(msg)
            del self._directories[directory_arn]

    async def delete_schema(self, schema_arn: str) -> None:
        await self._enter("delete_schema")
        async with self._lock:
            if self._schemas.pop(schema_arn, None) is None:
                msg = f"Schema not found: {schema_arn}"
                raise NotFoundError(msg)

    # ----- Writes -----

    async def create_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        facet: str,
        attributes: Sequence[AttributeKeyAndValue] = (),
    ) -> str:
        await self._enter("create_object")
        validate_link_name(link_name)
        async with self._lock:
            directory = self._directory(directory_arn)
            facet_def = directory.schema.facet(facet)
            values = validate_attributes(facet_def, attributes)
            parent_obj = self._resolve(directory, parent)
            self._require_link_free(parent_obj, parent, link_name)

            obj = _Object(
                id=_new_id(),
                kind=facet_def.kind,
                facets=(facet_def.name,),
                attributes=values,
            )
            directory.objects[obj.id] = obj
            self._link(parent_obj, link_name, obj)
            return obj.id

    async def attach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        child: ObjectRef,
    ) -> str:
        await self._enter("attach_object")
        validate_link_name(link_name)
        async with self._lock:
            directory = self._directory(directory_arn)
            parent_obj = self._resolve(directory, parent)
            child_obj = self._resolve(directory, child)
            self._require_link_free(parent_obj, parent, link_name)
            if child_obj.id == directory.root_id:
                raise CardinalityError("The directory root cannot be attached")
            if child_obj.kind is not ObjectKind.LEAF_NODE and child_obj.parents:
                msg = (
                    f"{child} is a {child_obj.kind.value} object and already "
                    "has a parent"
                )
                raise CardinalityError(msg)
            self._link(parent_obj, link_name, child_obj)
            return child_obj.id

    async def detach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
    ) -> str:
        await self._enter("detach_object")
        async with self._lock:
            directory = self._directory(directory_arn)
            parent_obj = self._resolve(directory, parent)
            child_id = parent_obj.children.pop(link_name, None)
            if child_id is None:
                msg = f"No link {link_name!r} under {parent}"
                raise NotFoundError(msg)
            child_obj = directory.objects[child_id]
            child_obj.parents.remove((parent_obj.id, link_name))
            return child_id

    # ----- Reads -----

    async def list_children(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.SERIALIZABLE,
    ) -> dict[str, str]:
        await self._enter("list_children", consistency)
        directory = self._directory(directory_arn)
        target = self._resolve(directory, obj)
        if target.kind is not ObjectKind.NODE:
            msg = f"{obj} is a {target.kind.value} object and has no children"
            raise NotTraversableError(msg)
        return dict(target.children)

    async def list_attributes(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[AttributeKeyAndValue]:
        await self._enter("list_attributes", consistency)
        target = self._resolve(self._directory(directory_arn), obj)
        return [
            AttributeKeyAndValue(key=key, value=value)
            for key, value in target.attributes.items()
        ]

    async def get_applied_facets(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[str]:
        await self._enter("get_applied_facets", consistency)
        target = self._resolve(self._directory(directory_arn), obj)
        return list(target.facets)

    async def list_parent_paths(self, directory_arn: str, obj: ObjectRef) -> set[str]:
        await self._enter("list_parent_paths")
        directory = self._directory(directory_arn)
        target = self._resolve(directory, obj)
        return self._paths_to(directory, target.id)

    # ----- Indexes -----

    async def create_index(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        keys: Sequence[AttributeKey],
        *,
        unique: bool = True,
    ) -> str:
        await self._enter("create_index")
        validate_link_name(link_name)
        if not keys:
            raise ValueError("An index needs at least one attribute key")
        async with self._lock:
            directory = self._directory(directory_arn)
            for key in keys:
                if directory.schema.facet(key.facet).attribute(key.name) is None:
                    msg = f"Attribute {key} is not declared on facet {key.facet!r}"
                    raise FacetAttributeError(msg)
            parent_obj = self._resolve(directory, parent)
            self._require_link_free(parent_obj, parent, link_name)
            index = _Object(
                id=_new_id(),
                kind=ObjectKind.INDEX,
                unique=unique,
                keys=tuple(keys),
            )
            directory.objects[index.id] = index
            self._link(parent_obj, link_name, index)
            return index.id

    async def attach_to_index(
        self,
        directory_arn: str,
        index: ObjectRef,
        target: ObjectRef,
    ) -> None:
        await self._enter("attach_to_index")
        async with self._lock:
            directory = self._directory(directory_arn)
            index_obj = self._resolve_index(directory, index)
            target_obj = self._resolve(directory, target)
            try:
                values = tuple(target_obj.attributes[key] for key in index_obj.keys)
            except KeyError as exc:
                msg = f"{target} has no value for indexed attribute {exc.args[0]}"
                raise FacetAttributeError(msg) from exc
            for entry in index_obj.entries:
                if entry.target_id == target_obj.id:
                    msg = f"{target} is already attached to index {index}"
                    raise ConflictError(msg)
                if index_obj.unique and entry.values == values:
                    msg = f"Unique index {index} already holds value {values!r}"
                    raise ConflictError(msg)
            index_obj.entries.append(_IndexEntry(values=values, target_id=target_obj.id))

    async def query_index_range(
        self,
        directory_arn: str,
        index: ObjectRef,
        key: AttributeKey,
        start: AttributeValue | None,
        end: AttributeValue | None,
        start_mode: RangeMode = RangeMode.INCLUSIVE,
        end_mode: RangeMode = RangeMode.INCLUSIVE,
    ) -> list[IndexAttachment]:
        await self._enter("query_index_range")
        index_obj = self._resolve_index(self._directory(directory_arn), index)
        if key not in index_obj.keys:
            msg = f"Index {index} does not cover attribute {key}"
            raise FacetAttributeError(msg)
        position = index_obj.keys.index(key)
        matches = [
            entry
            for entry in index_obj.entries
            if in_range(entry.values[position], start, end, start_mode, end_mode)
        ]
        matches.sort(key=lambda entry: entry.values[position])
        return [
            IndexAttachment(
                indexed_attributes=tuple(
                    AttributeKeyAndValue(key=k, value=v)
                    for k, v in zip(index_obj.keys, entry.values)
                ),
                object_id=entry.target_id,
            )
            for entry in matches
        ]

    # ----- Internal helpers -----

    async def _enter(
        self, operation: str, consistency: ConsistencyLevel | None = None
    ) -> None:
        self.calls.append((operation, consistency))
        if self._latency:
            await asyncio.sleep(self._latency)

    def _directory(self, directory_arn: str) -> _Directory:
        directory = self._directories.get(directory_arn)
        if directory is None:
            msg = f"Directory not found: {directory_arn}"
            raise NotFoundError(msg)
        if not directory.enabled:
            msg = f"Directory {directory_arn} is disabled"
            raise DirectoryError(msg)
        return directory

    def _resolve(self, directory: _Directory, ref: ObjectRef) -> _Object:
        if ref.is_id:
            obj = directory.objects.get(ref.id)
            if obj is None:
                msg = f"Object not found: {ref}"
                raise NotFoundError(msg)
            return obj
        obj = directory.objects[directory.root_id]
        for segment in split_path(ref.selector):
            child_id = obj.children.get(segment)
            if child_id is None:
                msg = f"Object not found: {ref}"
                raise NotFoundError(msg)
            obj = directory.objects[child_id]
        return obj

    def _resolve_index(self, directory: _Directory, ref: ObjectRef) -> _Object:
        obj = self._resolve(directory, ref)
        if obj.kind is not ObjectKind.INDEX:
            msg = f"{ref} is not an index"
            raise NotFoundError(msg)
        return obj

    @staticmethod
    def _require_link_free(parent: _Object, parent_ref: ObjectRef, link_name: str) -> None:
        if parent.kind is not ObjectKind.NODE:
            msg = f"{parent_ref} is a {parent.kind.value} object and cannot have children"
            raise NotTraversableError(msg)
        if link_name in parent.children:
            msg = f"Link {link_name!r} already exists under {parent_ref}"
            raise ConflictError(msg)

    @staticmethod
    def _link(parent: _Object, link_name: str, child: _Object) -> None:
        parent.children[link_name] = child.id
        child.parents.append((parent.id, link_name))

    def _paths_to(self, directory: _Directory, object_id: str) -> set[str]:
        if object_id == directory.root_id:
            return {ROOT_PATH}
        paths: set[str] = set()
        for parent_id, link_name in directory.objects[object_id].parents:
            for parent_path in self._paths_to(directory, parent_id):
                paths.add(join_path(parent_path, link_name))
        return paths


