"""Development schema construction and publishing."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from pydantic import ValidationError

from dirgraph.errors import SchemaError
from dirgraph.models.schema import AttributeDefinition
from dirgraph.models.schema import AttributeType
from dirgraph.models.schema import Facet
from dirgraph.models.schema import Mutability
from dirgraph.models.schema import ObjectKind
from dirgraph.models.schema import RequiredBehavior
from dirgraph.models.schema import Schema
from dirgraph.models.schema import SchemaState

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"\d+(\.\d+)*", re.ASCII)
_ARN_PREFIX = "arn:dirgraph:schema"


def required_mutable_string_attributes(*names: str) -> tuple[AttributeDefinition, ...]:
    """Return required, mutable ``STRING`` definitions for each of *names*."""
    return tuple(
        AttributeDefinition(
            name=name,
            type=AttributeType.STRING,
            required=RequiredBehavior.REQUIRED_ALWAYS,
            mutability=Mutability.MUTABLE,
        )
        for name in names
    )


class SchemaBuilder:
    """Collects facets for one development schema, then publishes it.

    Once ``publish`` succeeds the builder is frozen and further
    ``define_facet`` calls raise ``SchemaError``.
    """

    def __init__(self, name: str) -> None:
        if not name:
            raise SchemaError("Schema name must not be empty")
        self._name = name
        self._facets: dict[str, Facet] = {}
        self._published: Schema | None = None

    @property
    def development_arn(self) -> str:
        return f"{_ARN_PREFIX}/development/{self._name}"

    def define_facet(
        self,
        name: str,
        kind: ObjectKind,
        attributes: Iterable[AttributeDefinition] = (),
    ) -> Facet:
        """Register a facet in the development schema."""
        if self._published is not None:
            msg = f"Schema {self._name!r} is published; facets can no longer be added"
            raise SchemaError(msg)
        if name in self._facets:
            msg = f"Facet {name!r} is already defined in schema {self._name!r}"
            raise SchemaError(msg)
        try:
            kind = ObjectKind(kind)
        except ValueError as exc:
            msg = f"Unknown object kind for facet {name!r}: {kind!r}"
            raise SchemaError(msg) from exc
        if kind is ObjectKind.INDEX:
            raise SchemaError("Index objects are created with create_index, not facets")

        definitions = tuple(attributes)
        seen: set[str] = set()
        for definition in definitions:
            if definition.name in seen:
                msg = f"Facet {name!r} declares attribute {definition.name!r} twice"
                raise SchemaError(msg)
            seen.add(definition.name)

        try:
            facet = Facet(name=name, kind=kind, attributes=definitions)
        except ValidationError as exc:
            msg = f"Malformed facet {name!r}: {exc.errors()[0]['msg']}"
            raise SchemaError(msg) from exc
        logger.debug(
            "defined facet %s kind=%s attributes=%s",
            name,
            kind.value,
            [d.name for d in definitions],
        )
        self._facets[name] = facet
        return facet

    def development_schema(self) -> Schema:
        """Snapshot of the schema as it stands now."""
        return Schema(
            name=self._name,
            arn=self.development_arn,
            state=SchemaState.DEVELOPMENT,
            facets=tuple(self._facets.values()),
        )

    def publish(self, version: str) -> Schema:
        """Freeze the development schema under *version*."""
        if self._published is not None:
            msg = f"Schema {self._name!r} was already published as {self._published.version}"
            raise SchemaError(msg)
        if not self._facets:
            msg = f"Schema {self._name!r} has no facets to publish"
            raise SchemaError(msg)
        if not isinstance(version, str) or not _VERSION_RE.fullmatch(version):
            msg = f"Malformed schema version: {version!r}"
            raise SchemaError(msg)

        self._published = Schema(
            name=self._name,
            arn=f"{_ARN_PREFIX}/published/{self._name}/{version}",
            state=SchemaState.PUBLISHED,
            version=version,
            facets=tuple(self._facets.values()),
        )
        logger.info("published schema %s version=%s", self._name, version)
        return self._published
