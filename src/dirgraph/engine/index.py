"""Index engine: unique ordered indexes and exact-value lookup.

Objects are attached to an index explicitly after creation. An exact
lookup is a range query whose start and end are the same value, both
inclusive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field

from dirgraph.errors import DirectoryError
from dirgraph.errors import NotFoundError
from dirgraph.models.refs import AttributeKey
from dirgraph.models.refs import AttributeValue
from dirgraph.models.refs import IndexAttachment
from dirgraph.models.refs import join_path
from dirgraph.models.refs import ObjectRef
from dirgraph.models.refs import RangeMode
from dirgraph.observability import timed
from dirgraph.session import DirectorySession

logger = logging.getLogger(__name__)


@dataclass
class IndexBatchResult:
    """Per-object outcome of ``IndexEngine.attach_all_to_index``."""

    attached: list[ObjectRef] = field(default_factory=list)
    failures: dict[ObjectRef, DirectoryError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Re-raise the first recorded failure, if any."""
        for error in self.failures.values():
            raise error


class IndexEngine:
    """Creates, populates and queries indexes in one directory session."""

    def __init__(self, session: DirectorySession, *, max_concurrency: int = 8) -> None:
        self._session = session
        self._max_concurrency = max(max_concurrency, 1)

    async def create_index(
        self,
        parent_path: str,
        link_name: str,
        keys: Sequence[AttributeKey],
        *,
        unique: bool = True,
    ) -> str:
        """Create an index under *parent_path* and return its path."""
        await self._session.store.create_index(
            self._session.directory_arn,
            ObjectRef.path(parent_path),
            link_name,
            keys,
            unique=unique,
        )
        path = join_path(parent_path, link_name)
        logger.info(
            "created index %s keys=%s unique=%s",
            path,
            [str(key) for key in keys],
            unique,
        )
        return path

    async def attach_all_to_index(
        self, index_path: str, objects: Iterable[ObjectRef]
    ) -> IndexBatchResult:
        """Attach every object in *objects* to the index at *index_path*.

        Attachments run concurrently. Directory errors (for instance a
        unique-value collision) are recorded per object in the result;
        any other exception propagates.
        """
        targets = list(dict.fromkeys(objects))
        index_ref = ObjectRef.path(index_path)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def attach(target: ObjectRef) -> None:
            async with semaphore:
                await self._session.store.attach_to_index(
                    self._session.directory_arn, index_ref, target
                )

        result = IndexBatchResult()
        with timed("index.attach_batch") as sample:
            outcomes = await asyncio.gather(
                *(attach(target) for target in targets), return_exceptions=True
            )
            sample.objects = sum(
                1 for outcome in outcomes if not isinstance(outcome, BaseException)
            )
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, DirectoryError):
                logger.warning("could not attach %s to %s: %s", target, index_path, outcome)
                result.failures[target] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.attached.append(target)
        return result

    async def find_by_exact_value(
        self, index_path: str, key: AttributeKey, value: AttributeValue
    ) -> list[IndexAttachment]:
        """Return the attachments whose *key* value equals *value*."""
        with timed("index.exact_lookup") as sample:
            attachments = await self._session.store.query_index_range(
                self._session.directory_arn,
                ObjectRef.path(index_path),
                key,
                value,
                value,
                RangeMode.INCLUSIVE,
                RangeMode.INCLUSIVE,
            )
            sample.objects = len(attachments)
        return attachments

    async def get_by_exact_value(
        self, index_path: str, key: AttributeKey, value: AttributeValue
    ) -> IndexAttachment:
        """Like ``find_by_exact_value`` but the entry must exist."""
        attachments = await self.find_by_exact_value(index_path, key, value)
        if not attachments:
            msg = f"No entry for {key}={value!r} in index {index_path}"
            raise NotFoundError(msg)
        return attachments[0]
