"""Directory session: the handles one build/query/teardown cycle works with.

A ``DirectorySession`` is passed explicitly to the builder, query and
index engines, so several sessions can be open on the same store at
once without sharing state.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from dataclasses import field

from dirgraph.config import DirectoryConfig
from dirgraph.config import IdentifierConfig
from dirgraph.errors import NotFoundError
from dirgraph.identifiers import build_identifier_policy
from dirgraph.identifiers import IdentifierPolicy
from dirgraph.identifiers import SequentialIdentifierPolicy
from dirgraph.models.refs import DirectoryHandle
from dirgraph.models.schema import Schema
from dirgraph.store.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectorySession:
    """A store plus the directory and published schema it was opened with.

    ``identifiers`` is shared by every builder working on this directory,
    so generated ids stay unique within it.
    """

    store: ObjectStore
    handle: DirectoryHandle
    schema: Schema
    identifiers: IdentifierPolicy = field(
        default_factory=SequentialIdentifierPolicy, compare=False, repr=False
    )

    @property
    def directory_arn(self) -> str:
        return self.handle.directory_arn

    @property
    def applied_schema(self) -> Schema:
        return self.schema.applied_to(self.directory_arn)

    @classmethod
    async def open(
        cls,
        store: ObjectStore,
        schema: Schema,
        config: DirectoryConfig | None = None,
        identifier_config: IdentifierConfig | None = None,
    ) -> DirectorySession:
        """Create a directory from the published *schema*."""
        config = config or DirectoryConfig()
        identifiers = build_identifier_policy(identifier_config or IdentifierConfig())
        handle = await store.create_directory(config.directory_name, schema)
        logger.info(
            "opened directory %s arn=%s schema=%s",
            handle.name,
            handle.directory_arn,
            schema.arn,
        )
        return cls(store=store, handle=handle, schema=schema, identifiers=identifiers)

    async def teardown(self) -> None:
        """Delete the published schema and the directory.

        Targets that are already gone are skipped, so teardown can run
        more than once.
        """
        await _tolerate_missing(self.store.delete_schema(self.schema.arn), self.schema.arn)
        await _tolerate_missing(
            self.store.disable_directory(self.directory_arn), self.directory_arn
        )
        await _tolerate_missing(
            self.store.delete_directory(self.directory_arn), self.directory_arn
        )
        logger.info("tore down directory %s", self.directory_arn)


async def _tolerate_missing(call, target: str) -> None:
    try:
        await call
    except NotFoundError:
        logger.debug("teardown target already deleted: %s", target)


@asynccontextmanager
async def directory_session(
    store: ObjectStore,
    schema: Schema,
    config: DirectoryConfig | None = None,
    identifier_config: IdentifierConfig | None = None,
) -> AsyncIterator[DirectorySession]:
    """Open a session and always tear it down on exit."""
    session = await DirectorySession.open(store, schema, config, identifier_config)
    try:
        yield session
    finally:
        await session.teardown()
