"""Tests for the in-memory object store semantics."""

from __future__ import annotations

import pytest

from dirgraph.errors import CardinalityError
from dirgraph.errors import ConflictError
from dirgraph.errors import DirectoryError
from dirgraph.errors import FacetAttributeError
from dirgraph.errors import NotFoundError
from dirgraph.errors import NotTraversableError
from dirgraph.errors import SchemaError
from dirgraph.models import attribute
from dirgraph.models import AttributeKey
from dirgraph.models import ConsistencyLevel
from dirgraph.models import ObjectRef
from dirgraph.models import RangeMode
from dirgraph.store import ObjectStore
from dirgraph.store.memory import InMemoryObjectStore

P = ObjectRef.path


def _employee(employee_id: str, name: str = "abbie b.", role: str = "sde"):
    return (
        attribute("employee_facet", "employee_role", role),
        attribute("employee_facet", "employee_id", employee_id),
        attribute("employee_facet", "employee_name", name),
    )


async def _group(store, arn, parent, name, group_type="team"):
    return await store.create_object(
        arn, P(parent), name, "group_facet",
        [attribute("group_facet", "group_type", group_type)],
    )


def test_implements_protocol():
    assert isinstance(InMemoryObjectStore(), ObjectStore)


# ===================================================================
# Object creation
# ===================================================================


class TestCreateObject:
    async def test_create_and_read_back(self, store, session):
        arn = session.directory_arn
        object_id = await _group(store, arn, "/", "org", "organization")

        for consistency in ConsistencyLevel:
            attrs = await store.list_attributes(arn, ObjectRef.object_id(object_id), consistency)
            assert attrs == [attribute("group_facet", "group_type", "organization")]
        assert await store.get_applied_facets(arn, P("/org")) == ["group_facet"]

    async def test_duplicate_link_name(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        with pytest.raises(ConflictError):
            await _group(store, arn, "/", "org")

    async def test_missing_required_attribute(self, store, session):
        with pytest.raises(FacetAttributeError, match="group_type"):
            await store.create_object(session.directory_arn, P("/"), "org", "group_facet")

    async def test_mistyped_attribute(self, store, session):
        with pytest.raises(FacetAttributeError, match="STRING"):
            await store.create_object(
                session.directory_arn, P("/"), "org", "group_facet",
                [attribute("group_facet", "group_type", 7)],
            )

    async def test_undeclared_attribute(self, store, session):
        with pytest.raises(FacetAttributeError, match="not declared"):
            await store.create_object(
                session.directory_arn, P("/"), "org", "group_facet",
                [
                    attribute("group_facet", "group_type", "team"),
                    attribute("group_facet", "budget", "big"),
                ],
            )

    async def test_attribute_from_other_facet(self, store, session):
        with pytest.raises(FacetAttributeError, match="does not belong"):
            await store.create_object(
                session.directory_arn, P("/"), "org", "group_facet",
                [attribute("office_facet", "office_id", "x")],
            )

    async def test_unknown_facet(self, store, session):
        with pytest.raises(SchemaError):
            await store.create_object(session.directory_arn, P("/"), "b", "building_facet")

    async def test_missing_parent(self, store, session):
        with pytest.raises(NotFoundError):
            await store.create_object(session.directory_arn, P("/nowhere"), "r", "region_facet")

    async def test_cannot_create_under_leaf(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        await store.create_object(arn, P("/org"), "sde-1", "employee_facet", _employee("sde-1"))
        with pytest.raises(NotTraversableError):
            await store.create_object(arn, P("/org/sde-1"), "r", "region_facet")

    @pytest.mark.parametrize("link_name", ["", "a/b", "$abc"])
    async def test_invalid_link_name(self, store, session, link_name):
        with pytest.raises(ValueError):
            await store.create_object(session.directory_arn, P("/"), link_name, "region_facet")


# ===================================================================
# Attachment rules
# ===================================================================


class TestAttach:
    async def test_node_cannot_get_second_parent(self, store, session):
        arn = session.directory_arn
        await store.create_object(arn, P("/"), "locations", "region_facet")
        await store.create_object(arn, P("/"), "other", "region_facet")
        await store.create_object(arn, P("/locations"), "emea", "region_facet")
        with pytest.raises(CardinalityError):
            await store.attach_object(arn, P("/other"), "emea", P("/locations/emea"))

    async def test_leaf_gets_many_parents(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        await store.create_object(arn, P("/"), "office1", "region_facet")
        await store.create_object(arn, P("/"), "office2", "region_facet")
        leaf_id = await store.create_object(arn, P("/org"), "e1", "employee_facet", _employee("e1"))

        assert await store.attach_object(arn, P("/office1"), "e1", P("/org/e1")) == leaf_id
        await store.attach_object(arn, P("/office2"), "e1", ObjectRef.object_id(leaf_id))

        paths = await store.list_parent_paths(arn, ObjectRef.object_id(leaf_id))
        assert paths == {"/org/e1", "/office1/e1", "/office2/e1"}

    async def test_attach_duplicate_link_name(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        await store.create_object(arn, P("/org"), "e1", "employee_facet", _employee("e1"))
        await store.create_object(arn, P("/org"), "e2", "employee_facet", _employee("e2"))
        with pytest.raises(ConflictError):
            await store.attach_object(arn, P("/org"), "e1", P("/org/e2"))

    async def test_root_cannot_be_attached(self, store, session):
        arn = session.directory_arn
        await store.create_object(arn, P("/"), "r", "region_facet")
        with pytest.raises(CardinalityError):
            await store.attach_object(arn, P("/r"), "loop", P("/"))

    async def test_detach_then_reattach_node(self, store, session):
        arn = session.directory_arn
        await store.create_object(arn, P("/"), "a", "region_facet")
        await store.create_object(arn, P("/"), "b", "region_facet")
        child_id = await store.create_object(arn, P("/a"), "c", "region_facet")

        assert await store.detach_object(arn, P("/a"), "c") == child_id
        assert await store.list_children(arn, P("/a")) == {}
        assert await store.list_parent_paths(arn, ObjectRef.object_id(child_id)) == set()

        await store.attach_object(arn, P("/b"), "c", ObjectRef.object_id(child_id))
        assert await store.list_parent_paths(arn, ObjectRef.object_id(child_id)) == {"/b/c"}

    async def test_detach_missing_link(self, store, session):
        with pytest.raises(NotFoundError):
            await store.detach_object(session.directory_arn, P("/"), "ghost")


# ===================================================================
# Reads
# ===================================================================


class TestReads:
    async def test_list_children_of_leaf_not_traversable(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        await store.create_object(arn, P("/org"), "e1", "employee_facet", _employee("e1"))
        with pytest.raises(NotTraversableError):
            await store.list_children(arn, P("/org/e1"))

    async def test_list_children_maps_link_to_id(self, store, session):
        arn = session.directory_arn
        a = await store.create_object(arn, P("/"), "a", "region_facet")
        b = await store.create_object(arn, P("/"), "b", "region_facet")
        assert await store.list_children(arn, P("/")) == {"a": a, "b": b}

    async def test_root_parent_path(self, store, session):
        assert await store.list_parent_paths(session.directory_arn, P("/")) == {"/"}

    async def test_consistency_is_recorded_per_call(self, store, session):
        arn = session.directory_arn
        await store.list_children(arn, P("/"), ConsistencyLevel.EVENTUAL)
        await store.get_applied_facets(arn, P("/"), ConsistencyLevel.SERIALIZABLE)
        assert ("list_children", ConsistencyLevel.EVENTUAL) in store.calls
        assert ("get_applied_facets", ConsistencyLevel.SERIALIZABLE) in store.calls

    async def test_call_log_keeps_only_recent_calls(self, org_schema):
        store = InMemoryObjectStore(call_log_size=3)
        handle = await store.create_directory("Bounded", org_schema)
        for _ in range(10):
            await store.list_children(handle.directory_arn, P("/"), ConsistencyLevel.EVENTUAL)
        await store.get_applied_facets(handle.directory_arn, P("/"))

        assert len(store.calls) == 3
        assert store.calls[-1][0] == "get_applied_facets"
        assert store.calls[0] == ("list_children", ConsistencyLevel.EVENTUAL)

    async def test_unknown_object_id(self, store, session):
        with pytest.raises(NotFoundError):
            await store.list_attributes(session.directory_arn, ObjectRef.object_id("nope"))


# ===================================================================
# Indexes
# ===================================================================

NAME_KEY = AttributeKey(facet="employee_facet", name="employee_name")


class TestIndexes:
    async def _populate(self, store, arn, names):
        await _group(store, arn, "/", "org")
        await store.create_index(arn, P("/org"), "by_name", [NAME_KEY])
        ids = {}
        for n, name in enumerate(names):
            link = f"e{n}"
            ids[name] = await store.create_object(
                arn, P("/org"), link, "employee_facet", _employee(link, name)
            )
            await store.attach_to_index(arn, P("/org/by_name"), P(f"/org/{link}"))
        return ids

    async def test_unique_collision(self, store, session):
        arn = session.directory_arn
        await self._populate(store, arn, ["amy"])
        await store.create_object(arn, P("/org"), "dup", "employee_facet", _employee("dup", "amy"))
        with pytest.raises(ConflictError, match="Unique"):
            await store.attach_to_index(arn, P("/org/by_name"), P("/org/dup"))

    async def test_same_target_twice(self, store, session):
        arn = session.directory_arn
        await self._populate(store, arn, ["amy"])
        with pytest.raises(ConflictError, match="already attached"):
            await store.attach_to_index(arn, P("/org/by_name"), P("/org/e0"))

    async def test_non_unique_index_allows_equal_values(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        await store.create_index(arn, P("/org"), "by_role", [AttributeKey(facet="employee_facet", name="employee_role")], unique=False)
        for link in ("e1", "e2"):
            await store.create_object(arn, P("/org"), link, "employee_facet", _employee(link))
            await store.attach_to_index(arn, P("/org/by_role"), P(f"/org/{link}"))
        hits = await store.query_index_range(
            arn, P("/org/by_role"), AttributeKey(facet="employee_facet", name="employee_role"),
            "sde", "sde",
        )
        assert len(hits) == 2

    async def test_range_modes(self, store, session):
        arn = session.directory_arn
        ids = await self._populate(store, arn, ["carl", "amy", "dora", "ben"])
        index = P("/org/by_name")

        async def names(start, end, start_mode, end_mode):
            hits = await store.query_index_range(arn, index, NAME_KEY, start, end, start_mode, end_mode)
            return [h.indexed_attributes[0].value for h in hits]

        assert await names("amy", "carl", RangeMode.INCLUSIVE, RangeMode.INCLUSIVE) == ["amy", "ben", "carl"]
        assert await names("amy", "carl", RangeMode.EXCLUSIVE, RangeMode.EXCLUSIVE) == ["ben"]
        assert await names(None, "ben", RangeMode.FIRST, RangeMode.INCLUSIVE) == ["amy", "ben"]
        assert await names("carl", None, RangeMode.INCLUSIVE, RangeMode.LAST) == ["carl", "dora"]
        hits = await store.query_index_range(arn, index, NAME_KEY, "dora", "dora")
        assert [h.object_id for h in hits] == [ids["dora"]]

    async def test_index_is_not_traversable(self, store, session):
        arn = session.directory_arn
        await self._populate(store, arn, ["amy"])
        with pytest.raises(NotTraversableError):
            await store.list_children(arn, P("/org/by_name"))
        assert await store.get_applied_facets(arn, P("/org/by_name")) == []

    async def test_index_on_undeclared_attribute(self, store, session):
        arn = session.directory_arn
        with pytest.raises(FacetAttributeError):
            await store.create_index(
                arn, P("/"), "bad", [AttributeKey(facet="employee_facet", name="salary")]
            )

    async def test_attach_to_non_index(self, store, session):
        arn = session.directory_arn
        await _group(store, arn, "/", "org")
        with pytest.raises(NotFoundError):
            await store.attach_to_index(arn, P("/org"), P("/org"))

    async def test_target_without_indexed_attribute(self, store, session):
        arn = session.directory_arn
        await self._populate(store, arn, [])
        with pytest.raises(FacetAttributeError):
            await store.attach_to_index(arn, P("/org/by_name"), P("/org"))


# ===================================================================
# Directory lifecycle
# ===================================================================


class TestLifecycle:
    async def test_disabled_directory_rejects_calls(self, store, session):
        await store.disable_directory(session.directory_arn)
        with pytest.raises(DirectoryError, match="disabled"):
            await store.list_children(session.directory_arn, P("/"))

    async def test_delete_requires_disable(self, store, session):
        with pytest.raises(DirectoryError, match="disabled before deletion"):
            await store.delete_directory(session.directory_arn)

    async def test_delete_missing_targets(self, store):
        with pytest.raises(NotFoundError):
            await store.delete_schema("arn:dirgraph:schema/published/none/1")
        with pytest.raises(NotFoundError):
            await store.disable_directory("arn:dirgraph:directory/none")
        with pytest.raises(NotFoundError):
            await store.delete_directory("arn:dirgraph:directory/none")

    async def test_directory_requires_published_schema(self, store):
        from dirgraph.models import ObjectKind
        from dirgraph.schema import SchemaBuilder

        builder = SchemaBuilder("Org")
        builder.define_facet("region_facet", ObjectKind.NODE)
        with pytest.raises(SchemaError):
            await store.create_directory("dir", builder.development_schema())
