"""Neo4j-backed object store.

Layout inside the database:

- ``(:Directory {arn, name, enabled, schema})`` holds the applied schema
  document as JSON.
- ``(:Schema {arn, document})`` holds each published schema.
- ``(:DirObject {directory, id, kind, facets, root, ...})`` is one
  directory object. Attribute values are stored as ``a_<n>`` properties,
  with ``attr_facets`` / ``attr_names`` recording their keys in order.
- ``(parent)-[:CHILD {link_name}]->(child)`` is one attachment.
- ``(index)-[:INDEXED {v_<n>}]->(target)`` is one index attachment.

``SERIALIZABLE`` reads run as write transactions so a cluster routes
them to the leader; ``EVENTUAL`` reads run as read transactions and may
be served by a follower.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from neo4j import AsyncDriver
from neo4j import AsyncGraphDatabase
from neo4j import AsyncManagedTransaction
from neo4j import READ_ACCESS
from neo4j import time as neo4j_time
from neo4j import WRITE_ACCESS

from dirgraph.config import Neo4jConfig
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
from dirgraph.store.base import validate_attributes
from dirgraph.store.base import validate_link_name
from dirgraph.store.graph_schema import init_schema

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _new_id() -> str:
    return uuid.uuid4().hex


def _neo4j_to_python(value: object) -> object:
    """Convert Neo4j temporal types to Python stdlib equivalents."""
    if isinstance(value, (neo4j_time.DateTime, neo4j_time.Date)):
        return value.to_native()
    return value


def _attribute_props(values: dict[AttributeKey, AttributeValue]) -> dict:
    props: dict = {
        "attr_facets": [key.facet for key in values],
        "attr_names": [key.name for key in values],
    }
    for position, value in enumerate(values.values()):
        props[f"a_{position}"] = value
    return props


def _attributes_from_props(props: dict) -> list[AttributeKeyAndValue]:
    facets = props.get("attr_facets") or []
    names = props.get("attr_names") or []
    return [
        AttributeKeyAndValue(
            key=AttributeKey(facet=facet, name=name),
            value=_neo4j_to_python(props[f"a_{position}"]),
        )
        for position, (facet, name) in enumerate(zip(facets, names))
    ]


def _index_keys(props: dict) -> tuple[AttributeKey, ...]:
    return tuple(
        AttributeKey(facet=facet, name=name)
        for facet, name in zip(props["index_facets"], props["index_names"])
    )


# ---------------------------------------------------------------------------
# Transaction helpers
# ---------------------------------------------------------------------------


async def _require_directory(tx: AsyncManagedTransaction, directory_arn: str) -> Schema:
    result = await tx.run(
        "MATCH (d:Directory {arn: $arn}) "
        "RETURN d.enabled AS enabled, d.schema AS schema",
        arn=directory_arn,
    )
    record = await result.single()
    if record is None:
        msg = f"Directory not found: {directory_arn}"
        raise NotFoundError(msg)
    if not record["enabled"]:
        msg = f"Directory {directory_arn} is disabled"
        raise DirectoryError(msg)
    return Schema.model_validate_json(record["schema"])


async def _resolve(
    tx: AsyncManagedTransaction, directory_arn: str, ref: ObjectRef
) -> dict:
    """Return ``{"id", "kind"}`` of the object *ref* selects."""
    await _require_directory(tx, directory_arn)
    if ref.is_id:
        result = await tx.run(
            "MATCH (o:DirObject {directory: $d, id: $id}) "
            "RETURN o.id AS id, o.kind AS kind",
            d=directory_arn,
            id=ref.id,
        )
        record = await result.single()
        if record is None:
            msg = f"Object not found: {ref}"
            raise NotFoundError(msg)
        return record.data()

    result = await tx.run(
        "MATCH (o:DirObject {directory: $d, root: true}) "
        "RETURN o.id AS id, o.kind AS kind",
        d=directory_arn,
    )
    current = (await result.single()).data()
    for segment in split_path(ref.selector):
        result = await tx.run(
            "MATCH (:DirObject {directory: $d, id: $id})"
            "-[:CHILD {link_name: $link}]->(o:DirObject) "
            "RETURN o.id AS id, o.kind AS kind",
            d=directory_arn,
            id=current["id"],
            link=segment,
        )
        record = await result.single()
        if record is None:
            msg = f"Object not found: {ref}"
            raise NotFoundError(msg)
        current = record.data()
    return current


async def _lock(tx: AsyncManagedTransaction, object_id: str) -> None:
    """Take the write lock on one object for the rest of the transaction."""
    await tx.run(
        "MATCH (o:DirObject {id: $id}) SET o._lock = true REMOVE o._lock",
        id=object_id,
    )


async def _require_link_free(
    tx: AsyncManagedTransaction,
    parent: dict,
    parent_ref: ObjectRef,
    link_name: str,
) -> None:
    if parent["kind"] != ObjectKind.NODE.value:
        msg = f"{parent_ref} is a {parent['kind']} object and cannot have children"
        raise NotTraversableError(msg)
    await _lock(tx, parent["id"])
    result = await tx.run(
        "MATCH (:DirObject {id: $id})-[:CHILD {link_name: $link}]->() "
        "RETURN count(*) AS cnt",
        id=parent["id"],
        link=link_name,
    )
    record = await result.single()
    if record["cnt"] > 0:
        msg = f"Link {link_name!r} already exists under {parent_ref}"
        raise ConflictError(msg)


async def _link(
    tx: AsyncManagedTransaction, parent_id: str, link_name: str, child_id: str
) -> None:
    await tx.run(
        "MATCH (p:DirObject {id: $pid}), (c:DirObject {id: $cid}) "
        "CREATE (p)-[:CHILD {link_name: $link}]->(c)",
        pid=parent_id,
        cid=child_id,
        link=link_name,
    )


async def _object_props(tx: AsyncManagedTransaction, object_id: str) -> dict:
    result = await tx.run(
        "MATCH (o:DirObject {id: $id}) RETURN properties(o) AS props",
        id=object_id,
    )
    record = await result.single()
    return dict(record["props"])


# ---------------------------------------------------------------------------
# Neo4jObjectStore
# ---------------------------------------------------------------------------


class Neo4jObjectStore:
    """Async ``ObjectStore`` over a Neo4j database."""

    def __init__(self, driver: AsyncDriver, *, database: str | None = None) -> None:
        self._driver = driver
        self._database = database

    @classmethod
    async def connect(cls, config: Neo4jConfig | None = None) -> Neo4jObjectStore:
        """Open a driver for *config*, initialize the schema and wrap it.

        The returned store owns the driver; release it with ``close``.
        """
        config = config or Neo4jConfig()
        driver = AsyncGraphDatabase.driver(config.uri)
        try:
            await init_schema(driver, database=config.database)
        except BaseException:
            await driver.close()
            raise
        return cls(driver, database=config.database)

    async def close(self) -> None:
        await self._driver.close()

    def _session(self, mode: str = WRITE_ACCESS):
        return self._driver.session(database=self._database, default_access_mode=mode)

    async def _write(self, work, *args):
        async with self._session() as session:
            return await session.execute_write(work, *args)

    async def _read(self, consistency: ConsistencyLevel, work, *args):
        if consistency is ConsistencyLevel.SERIALIZABLE:
            return await self._write(work, *args)
        async with self._session(READ_ACCESS) as session:
            return await session.execute_read(work, *args)

    # ----- Directory lifecycle -----

    async def create_directory(self, name: str, schema: Schema) -> DirectoryHandle:
        if schema.state is not SchemaState.PUBLISHED:
            msg = f"Directory {name!r} needs a published schema, got {schema.state.value}"
            raise SchemaError(msg)
        arn = f"arn:dirgraph:directory/{_new_id()}"
        applied = schema.applied_to(arn)

        async def work(tx: AsyncManagedTransaction) -> None:
            await tx.run(
                "MERGE (s:Schema {arn: $schema_arn}) SET s.document = $document",
                schema_arn=schema.arn,
                document=schema.as_json(),
            )
            await tx.run(
                "CREATE (:Directory {arn: $arn, name: $name, enabled: true, schema: $schema}) "
                "CREATE (:DirObject {directory: $arn, id: $root_id, kind: $kind, "
                "facets: [], root: true})",
                arn=arn,
                name=name,
                schema=applied.model_dump_json(),
                root_id=_new_id(),
                kind=ObjectKind.NODE.value,
            )

        await self._write(work)
        return DirectoryHandle(directory_arn=arn, applied_schema_arn=applied.arn, name=name)

    async def disable_directory(self, directory_arn: str) -> None:
        async def work(tx: AsyncManagedTransaction) -> None:
            result = await tx.run(
                "MATCH (d:Directory {arn: $arn}) SET d.enabled = false "
                "RETURN count(d) AS cnt",
                arn=directory_arn,
            )
            record = await result.single()
            if record["cnt"] == 0:
                msg = f"Directory not found: {directory_arn}"
                raise NotFoundError(msg)

        await self._write(work)

    async def delete_directory(self, directory_arn: str) -> None:
        async def work(tx: AsyncManagedTransaction) -> None:
            result = await tx.run(
                "MATCH (d:Directory {arn: $arn}) RETURN d.enabled AS enabled",
                arn=directory_arn,
            )
            record = await result.single()
            if record is None:
                msg = f"Directory not found: {directory_arn}"
                raise NotFoundError(msg)
            if record["enabled"]:
                msg = f"Directory {directory_arn} must be disabled before deletion"
                raise DirectoryError(msg)
            await tx.run(
                "MATCH (o:DirObject {directory: $arn}) DETACH DELETE o",
                arn=directory_arn,
            )
            await tx.run("MATCH (d:Directory {arn: $arn}) DELETE d", arn=directory_arn)

        await self._write(work)

    async def delete_schema(self, schema_arn: str) -> None:
        async def work(tx: AsyncManagedTransaction) -> None:
            result = await tx.run(
                "MATCH (s:Schema {arn: $arn}) DELETE s RETURN count(s) AS cnt",
                arn=schema_arn,
            )
            record = await result.single()
            if record["cnt"] == 0:
                msg = f"Schema not found: {schema_arn}"
                raise NotFoundError(msg)

        await self._write(work)

    # ----- Writes -----

    async def create_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        facet: str,
        attributes: Sequence[AttributeKeyAndValue] = (),
    ) -> str:
        validate_link_name(link_name)

        async def work(tx: AsyncManagedTransaction) -> str:
            schema = await _require_directory(tx, directory_arn)
            facet_def = schema.facet(facet)
            values = validate_attributes(facet_def, attributes)
            parent_obj = await _resolve(tx, directory_arn, parent)
            await _require_link_free(tx, parent_obj, parent, link_name)

            object_id = _new_id()
            props = {
                "directory": directory_arn,
                "id": object_id,
                "kind": facet_def.kind.value,
                "facets": [facet_def.name],
                "root": False,
                **_attribute_props(values),
            }
            await tx.run("CREATE (o:DirObject) SET o = $props", props=props)
            await _link(tx, parent_obj["id"], link_name, object_id)
            return object_id

        return await self._write(work)

    async def attach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
        child: ObjectRef,
    ) -> str:
        validate_link_name(link_name)

        async def work(tx: AsyncManagedTransaction) -> str:
            parent_obj = await _resolve(tx, directory_arn, parent)
            child_obj = await _resolve(tx, directory_arn, child)
            await _require_link_free(tx, parent_obj, parent, link_name)
            await _lock(tx, child_obj["id"])
            result = await tx.run(
                "MATCH (c:DirObject {id: $id}) "
                "OPTIONAL MATCH (c)<-[r:CHILD]-() "
                "RETURN c.root AS root, count(r) AS parents",
                id=child_obj["id"],
            )
            record = await result.single()
            if record["root"]:
                raise CardinalityError("The directory root cannot be attached")
            if child_obj["kind"] != ObjectKind.LEAF_NODE.value and record["parents"] > 0:
                msg = f"{child} is a {child_obj['kind']} object and already has a parent"
                raise CardinalityError(msg)
            await _link(tx, parent_obj["id"], link_name, child_obj["id"])
            return child_obj["id"]

        return await self._write(work)

    async def detach_object(
        self,
        directory_arn: str,
        parent: ObjectRef,
        link_name: str,
    ) -> str:
        async def work(tx: AsyncManagedTransaction) -> str:
            parent_obj = await _resolve(tx, directory_arn, parent)
            result = await tx.run(
                "MATCH (:DirObject {id: $id})-[c:CHILD {link_name: $link}]->(o:DirObject) "
                "DELETE c RETURN o.id AS id",
                id=parent_obj["id"],
                link=link_name,
            )
            record = await result.single()
            if record is None:
                msg = f"No link {link_name!r} under {parent}"
                raise NotFoundError(msg)
            return record["id"]

        return await self._write(work)

    # ----- Reads -----

    async def list_children(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.SERIALIZABLE,
    ) -> dict[str, str]:
        async def work(tx: AsyncManagedTransaction) -> dict[str, str]:
            target = await _resolve(tx, directory_arn, obj)
            if target["kind"] != ObjectKind.NODE.value:
                msg = f"{obj} is a {target['kind']} object and has no children"
                raise NotTraversableError(msg)
            result = await tx.run(
                "MATCH (:DirObject {id: $id})-[c:CHILD]->(o:DirObject) "
                "RETURN c.link_name AS link_name, o.id AS id",
                id=target["id"],
            )
            return {record["link_name"]: record["id"] async for record in result}

        return await self._read(consistency, work)

    async def list_attributes(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[AttributeKeyAndValue]:
        async def work(tx: AsyncManagedTransaction) -> list[AttributeKeyAndValue]:
            target = await _resolve(tx, directory_arn, obj)
            return _attributes_from_props(await _object_props(tx, target["id"]))

        return await self._read(consistency, work)

    async def get_applied_facets(
        self,
        directory_arn: str,
        obj: ObjectRef,
        consistency: ConsistencyLevel = ConsistencyLevel.EVENTUAL,
    ) -> list[str]:
        async def work(tx: AsyncManagedTransaction) -> list[str]:
            target = await _resolve(tx, directory_arn, obj)
            props = await _object_props(tx, target["id"])
            return list(props.get("facets") or [])

        return await self._read(consistency, work)

    async def list_parent_paths(self, directory_arn: str, obj: ObjectRef) -> set[str]:
        async def work(tx: AsyncManagedTransaction) -> set[str]:
            target = await _resolve(tx, directory_arn, obj)
            result = await tx.run(
                "MATCH (o:DirObject {id: $id}) "
                # CHILD edges form a DAG below the root; no depth bound.
                "MATCH p = (:DirObject {directory: $d, root: true})-[:CHILD*0..]->(o) "
                "RETURN [rel IN relationships(p) | rel.link_name] AS links",
                id=target["id"],
                d=directory_arn,
            )
            paths: set[str] = set()
            async for record in result:
                path = ROOT_PATH
                for link_name in record["links"]:
                    path = join_path(path, link_name)
                paths.add(path)
            return paths

        return await self._read(ConsistencyLevel.SERIALIZABLE, work)

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
        validate_link_name(link_name)
        if not keys:
            raise ValueError("An index needs at least one attribute key")

        async def work(tx: AsyncManagedTransaction) -> str:
            schema = await _require_directory(tx, directory_arn)
            for key in keys:
                if schema.facet(key.facet).attribute(key.name) is None:
                    msg = f"Attribute {key} is not declared on facet {key.facet!r}"
                    raise FacetAttributeError(msg)
            parent_obj = await _resolve(tx, directory_arn, parent)
            await _require_link_free(tx, parent_obj, parent, link_name)
            index_id = _new_id()
            props = {
                "directory": directory_arn,
                "id": index_id,
                "kind": ObjectKind.INDEX.value,
                "facets": [],
                "root": False,
                "unique": unique,
                "index_facets": [key.facet for key in keys],
                "index_names": [key.name for key in keys],
            }
            await tx.run("CREATE (o:DirObject) SET o = $props", props=props)
            await _link(tx, parent_obj["id"], link_name, index_id)
            return index_id

        return await self._write(work)

    async def _index_props(
        self, tx: AsyncManagedTransaction, directory_arn: str, index: ObjectRef
    ) -> dict:
        index_obj = await _resolve(tx, directory_arn, index)
        if index_obj["kind"] != ObjectKind.INDEX.value:
            msg = f"{index} is not an index"
            raise NotFoundError(msg)
        return await _object_props(tx, index_obj["id"])

    async def attach_to_index(
        self,
        directory_arn: str,
        index: ObjectRef,
        target: ObjectRef,
    ) -> None:
        async def work(tx: AsyncManagedTransaction) -> None:
            index_props = await self._index_props(tx, directory_arn, index)
            await _lock(tx, index_props["id"])
            target_obj = await _resolve(tx, directory_arn, target)
            attributes = {
                item.key: item.value
                for item in _attributes_from_props(
                    await _object_props(tx, target_obj["id"])
                )
            }
            keys = _index_keys(index_props)
            missing = [key for key in keys if key not in attributes]
            if missing:
                msg = f"{target} has no value for indexed attribute {missing[0]}"
                raise FacetAttributeError(msg)
            values = [attributes[key] for key in keys]

            result = await tx.run(
                "MATCH (:DirObject {id: $id})-[e:INDEXED]->(t:DirObject) "
                "RETURN t.id AS target, properties(e) AS props",
                id=index_props["id"],
            )
            async for record in result:
                if record["target"] == target_obj["id"]:
                    msg = f"{target} is already attached to index {index}"
                    raise ConflictError(msg)
                existing = [
                    _neo4j_to_python(record["props"][f"v_{n}"]) for n in range(len(keys))
                ]
                if index_props["unique"] and existing == values:
                    msg = f"Unique index {index} already holds value {tuple(values)!r}"
                    raise ConflictError(msg)

            await tx.run(
                "MATCH (i:DirObject {id: $iid}), (t:DirObject {id: $tid}) "
                "CREATE (i)-[e:INDEXED]->(t) SET e = $props",
                iid=index_props["id"],
                tid=target_obj["id"],
                props={f"v_{n}": value for n, value in enumerate(values)},
            )

        await self._write(work)

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
        if start_mode is RangeMode.LAST or end_mode is RangeMode.FIRST:
            return []

        async def work(tx: AsyncManagedTransaction) -> list[IndexAttachment]:
            index_props = await self._index_props(tx, directory_arn, index)
            keys = _index_keys(index_props)
            if key not in keys:
                msg = f"Index {index} does not cover attribute {key}"
                raise FacetAttributeError(msg)
            prop = f"v_{keys.index(key)}"

            conditions = []
            if start_mode is RangeMode.INCLUSIVE:
                conditions.append("e[$prop] >= $start")
            elif start_mode is RangeMode.EXCLUSIVE:
                conditions.append("e[$prop] > $start")
            if end_mode is RangeMode.INCLUSIVE:
                conditions.append("e[$prop] <= $end")
            elif end_mode is RangeMode.EXCLUSIVE:
                conditions.append("e[$prop] < $end")
            where = f"WHERE {' AND '.join(conditions)} " if conditions else ""

            result = await tx.run(
                "MATCH (:DirObject {id: $id})-[e:INDEXED]->(t:DirObject) "
                f"{where}"
                "RETURN t.id AS target, properties(e) AS props "
                "ORDER BY e[$prop]",
                id=index_props["id"],
                prop=prop,
                start=start,
                end=end,
            )
            attachments = []
            async for record in result:
                attachments.append(
                    IndexAttachment(
                        indexed_attributes=tuple(
                            AttributeKeyAndValue(
                                key=k, value=_neo4j_to_python(record["props"][f"v_{n}"])
                            )
                            for n, k in enumerate(keys)
                        ),
                        object_id=record["target"],
                    )
                )
            return attachments

        return await self._read(ConsistencyLevel.EVENTUAL, work)
