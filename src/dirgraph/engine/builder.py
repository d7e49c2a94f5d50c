"""Graph builder: turns a logical org tree into object store calls.

Groups, regions and offices are single-parent ``NODE`` objects.
Employees are ``LEAF_NODE`` objects created under their group and then
linked under an office with ``link_employee_to_office``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from pydantic import BaseModel
from pydantic import Field

from dirgraph.config import IdentifierConfig
from dirgraph.identifiers import IdentifierPolicy
from dirgraph.errors import CardinalityError
from dirgraph.errors import ConflictError
from dirgraph.models import org
from dirgraph.models.refs import attribute
from dirgraph.models.refs import AttributeKeyAndValue
from dirgraph.models.refs import join_path
from dirgraph.models.refs import last_segment
from dirgraph.models.refs import ObjectRef
from dirgraph.session import DirectorySession

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Builder input
# ---------------------------------------------------------------------------


class ObjectRecord(BaseModel):
    """One object to create: where, under which link, with which facet."""

    model_config = {"frozen": True}

    parent_path: str
    link_name: str
    facet: str
    attributes: tuple[AttributeKeyAndValue, ...] = ()

    @property
    def path(self) -> str:
        return join_path(self.parent_path, self.link_name)


class CrossLink(BaseModel):
    """Attach an existing object under an additional parent."""

    model_config = {"frozen": True}

    parent_path: str
    object_path: str
    link_name: str | None = Field(
        default=None,
        description="Link name under the new parent; defaults to the object's trailing segment.",
    )


@dataclass
class PopulateResult:
    """Outcome of ``GraphBuilder.populate``."""

    created: dict[str, str] = field(default_factory=dict)
    linked: list[str] = field(default_factory=list)
    failed_links: list[tuple[CrossLink, CardinalityError]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# GraphBuilder
# ---------------------------------------------------------------------------


class GraphBuilder:
    """Populates one directory session.

    Ids come from the session's identifier policy unless *identifiers* is
    given; *config* only bounds the retries on an id collision.
    """

    def __init__(
        self,
        session: DirectorySession,
        *,
        identifiers: IdentifierPolicy | None = None,
        config: IdentifierConfig | None = None,
    ) -> None:
        self._session = session
        self._config = config or IdentifierConfig()
        self._identifiers = identifiers or session.identifiers

    # ----- Generic creation -----

    async def create(self, record: ObjectRecord) -> str:
        """Create the object described by *record* and return its id."""
        return await self._session.store.create_object(
            self._session.directory_arn,
            ObjectRef.path(record.parent_path),
            record.link_name,
            record.facet,
            record.attributes,
        )

    async def populate(
        self,
        records: Iterable[ObjectRecord],
        cross_links: Iterable[CrossLink] = (),
    ) -> PopulateResult:
        """Create *records* in order, then apply *cross_links*.

        Any error while creating records aborts the population. A
        ``CardinalityError`` on a cross link only fails that link.
        """
        result = PopulateResult()
        for record in records:
            result.created[record.path] = await self.create(record)
            logger.info("created %s facet=%s", record.path, record.facet)

        for link in cross_links:
            link_name = link.link_name or last_segment(link.object_path)
            try:
                await self._attach(link.parent_path, link_name, link.object_path)
            except CardinalityError as exc:
                logger.warning(
                    "cannot link %s under %s: %s", link.object_path, link.parent_path, exc
                )
                result.failed_links.append((link, exc))
                continue
            result.linked.append(join_path(link.parent_path, link_name))
        return result

    # ----- Org tree -----

    async def create_group(
        self, parent_path: str, name: str, group_type: org.GroupType
    ) -> str:
        path = join_path(parent_path, name)
        logger.info("creating group at %s, type: %s", path, group_type.value)
        await self.create(
            ObjectRecord(
                parent_path=parent_path,
                link_name=name,
                facet=org.GROUP_FACET,
                attributes=(attribute(org.GROUP_FACET, org.GROUP_TYPE, group_type.value),),
            )
        )
        return path

    async def create_region(self, parent_path: str, name: str) -> str:
        path = join_path(parent_path, name)
        logger.info("creating region at %s", path)
        await self.create(
            ObjectRecord(parent_path=parent_path, link_name=name, facet=org.REGION_FACET)
        )
        return path

    async def create_office(
        self, parent_path: str, location: str, office_type: org.OfficeType
    ) -> str:
        office_id = self._identifiers.generate(office_type.value)
        logger.info(
            "creating office at %s, location: %s, type: %s id: %s",
            parent_path,
            location,
            office_type.value,
            office_id,
        )
        await self.create(
            ObjectRecord(
                parent_path=parent_path,
                link_name=location,
                facet=org.OFFICE_FACET,
                attributes=(
                    attribute(org.OFFICE_FACET, org.OFFICE_ID, office_id),
                    attribute(org.OFFICE_FACET, org.OFFICE_TYPE, office_type.value),
                    attribute(org.OFFICE_FACET, org.OFFICE_LOCATION, location),
                ),
            )
        )
        return join_path(parent_path, location)

    async def create_employee(
        self, group_path: str, name: str, role: org.EmployeeRole
    ) -> str:
        """Create an employee under *group_path* and return its path.

        The employee id doubles as the link name, so an id collision
        surfaces as ``ConflictError`` and is retried with a fresh id up
        to ``IdentifierConfig.max_attempts`` times.
        """

        async def create_with(employee_id: str) -> None:
            logger.info(
                "creating employee at %s, name: %s, role: %s id: %s",
                group_path,
                name,
                role.value,
                employee_id,
            )
            await self.create(
                ObjectRecord(
                    parent_path=group_path,
                    link_name=employee_id,
                    facet=org.EMPLOYEE_FACET,
                    attributes=(
                        attribute(org.EMPLOYEE_FACET, org.EMPLOYEE_ROLE, role.value),
                        attribute(org.EMPLOYEE_FACET, org.EMPLOYEE_ID, employee_id),
                        attribute(org.EMPLOYEE_FACET, org.EMPLOYEE_NAME, name),
                    ),
                )
            )

        employee_id = await self._with_generated_id(role.value, create_with)
        return join_path(group_path, employee_id)

    async def link_employee_to_office(self, office_path: str, employee_path: str) -> str:
        """Attach an existing employee under *office_path* as a second parent."""
        employee_id = last_segment(employee_path)
        logger.info("assigning employee %s to office %s", employee_id, office_path)
        await self._attach(office_path, employee_id, employee_path)
        return join_path(office_path, employee_id)

    # ----- Internal helpers -----

    async def _attach(self, parent_path: str, link_name: str, object_path: str) -> None:
        await self._session.store.attach_object(
            self._session.directory_arn,
            ObjectRef.path(parent_path),
            link_name,
            ObjectRef.path(object_path),
        )

    async def _with_generated_id(
        self, code: str, create_with: Callable[[str], Awaitable[None]]
    ) -> str:
        attempts = max(self._config.max_attempts, 1)
        attempt = 1
        while True:
            candidate = self._identifiers.generate(code)
            try:
                await create_with(candidate)
                return candidate
            except ConflictError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "identifier %s already taken (attempt %d/%d), retrying",
                    candidate,
                    attempt,
                    attempts,
                )
                attempt += 1
