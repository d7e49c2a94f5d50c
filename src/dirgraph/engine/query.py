"""Recursive query engine: predicate-filtered subtree listing and path lookup.

``recursive_list`` visits a subtree in waves: every object on the
current frontier is checked against the predicate and has its children
listed, with sibling visits running concurrently up to
``QueryConfig.max_concurrency``. Leaf and index objects answer
``NotTraversableError`` when asked for children; that ends the branch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from dirgraph.config import QueryConfig
from dirgraph.engine.index import IndexEngine
from dirgraph.engine.predicates import ObjectView
from dirgraph.engine.predicates import Predicate
from dirgraph.errors import NotFoundError
from dirgraph.errors import NotTraversableError
from dirgraph.errors import TraversalIncompleteError
from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import ConsistencyLevel
from dirgraph.models.refs import ObjectRef
from dirgraph.models.refs import parent_of
from dirgraph.observability import timed
from dirgraph.session import DirectorySession

logger = logging.getLogger(__name__)


def _as_ref(obj: ObjectRef | str) -> ObjectRef:
    return obj if isinstance(obj, ObjectRef) else ObjectRef.path(obj)


class QueryEngine:
    """Read-side operations over one directory session."""

    def __init__(
        self,
        session: DirectorySession,
        config: QueryConfig | None = None,
        *,
        index_engine: IndexEngine | None = None,
    ) -> None:
        self._session = session
        self._config = config or QueryConfig()
        self._index_engine = index_engine or IndexEngine(
            session, max_concurrency=self._config.max_concurrency
        )

    # ----- Subtree listing -----

    async def recursive_list(
        self,
        root: ObjectRef | str,
        predicate: Predicate | None = None,
    ) -> set[ObjectRef]:
        """Return *root* and every descendant that satisfies *predicate*.

        A ``None`` predicate matches everything. A missing root yields an
        empty set. If ``QueryConfig.timeout_seconds`` elapses first,
        ``TraversalIncompleteError`` is raised with the partial result.
        """
        results: set[ObjectRef] = set()
        with timed(
            "query.recursive_list", consistency=self._config.topology_consistency
        ) as sample:
            try:
                await asyncio.wait_for(
                    self._traverse(_as_ref(root), predicate, results),
                    timeout=self._config.timeout_seconds,
                )
            except asyncio.TimeoutError:
                sample.objects = len(results)
                msg = (
                    f"Traversal of {root} timed out after "
                    f"{self._config.timeout_seconds}s"
                )
                raise TraversalIncompleteError(msg, partial=results) from None
            sample.objects = len(results)
        return results

    async def _traverse(
        self,
        root: ObjectRef,
        predicate: Predicate | None,
        results: set[ObjectRef],
    ) -> None:
        semaphore = asyncio.Semaphore(max(self._config.max_concurrency, 1))
        visited: set[str] = set()
        frontier = [root]
        while frontier:
            tasks = [
                asyncio.ensure_future(self._visit(ref, predicate, results, semaphore))
                for ref in frontier
            ]
            try:
                child_maps = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                raise

            frontier = []
            for children in child_maps:
                for object_id in children.values():
                    if object_id in visited:
                        continue
                    visited.add(object_id)
                    frontier.append(ObjectRef.object_id(object_id))

    async def _visit(
        self,
        ref: ObjectRef,
        predicate: Predicate | None,
        results: set[ObjectRef],
        semaphore: asyncio.Semaphore,
    ) -> dict[str, str]:
        async with semaphore:
            try:
                if predicate is None or predicate(await self._view(ref)):
                    results.add(ref)
                return await self._session.store.list_children(
                    self._session.directory_arn,
                    ref,
                    self._config.topology_consistency,
                )
            except NotTraversableError:
                logger.debug("reached leaf %s", ref)
                return {}
            except NotFoundError:
                logger.debug("object %s no longer exists", ref)
                return {}

    async def _view(self, ref: ObjectRef) -> ObjectView:
        store = self._session.store
        arn = self._session.directory_arn
        consistency = self._config.attribute_consistency
        facets, attributes = await asyncio.gather(
            store.get_applied_facets(arn, ref, consistency),
            store.list_attributes(arn, ref, consistency),
        )
        return ObjectView(ref=ref, facets=tuple(facets), attributes=tuple(attributes))

    # ----- Path resolution -----

    async def find_parent_paths_with_prefix(
        self, path_prefix: str, objects: Iterable[ObjectRef]
    ) -> set[str]:
        """Return every materialized path of *objects* starting with *path_prefix*.

        Objects that no longer exist contribute no paths.
        """
        refs = list(dict.fromkeys(objects))
        if not refs:
            return set()

        async def paths_of(ref: ObjectRef) -> set[str]:
            try:
                return await self._session.store.list_parent_paths(
                    self._session.directory_arn, ref
                )
            except NotFoundError:
                logger.debug("object %s no longer exists", ref)
                return set()

        with timed(
            "query.parent_paths", consistency=ConsistencyLevel.SERIALIZABLE
        ) as sample:
            path_sets = await asyncio.gather(*(paths_of(ref) for ref in refs))
            sample.objects = sum(1 for paths in path_sets if paths)
        return {
            path
            for paths in path_sets
            for path in paths
            if path.startswith(path_prefix)
        }

    @staticmethod
    def parent_locations(paths: Iterable[str]) -> set[str]:
        """Strip the trailing segment from each path."""
        return {parent_of(path) for path in paths}

    # ----- Index delegation -----

    async def find_by_index(
        self, index_path: str, key: AttributeKey, value: AttributeValue
    ) -> set[ObjectRef]:
        """Objects whose indexed *key* equals *value*, via the index engine."""
        attachments = await self._index_engine.find_by_exact_value(index_path, key, value)
        return {attachment.ref for attachment in attachments}
