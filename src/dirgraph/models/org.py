"""Organisation-chart vocabulary: group types, employee roles, office types.

Facet and attribute names used by the org facets live here as module
constants so the builder, the predicates and the tests agree on them.
"""

from __future__ import annotations

from enum import Enum

GROUP_FACET = "group_facet"
REGION_FACET = "region_facet"
OFFICE_FACET = "office_facet"
EMPLOYEE_FACET = "employee_facet"

GROUP_TYPE = "group_type"
OFFICE_ID = "office_id"
OFFICE_LOCATION = "office_location"
OFFICE_TYPE = "office_type"
EMPLOYEE_ID = "employee_id"
EMPLOYEE_NAME = "employee_name"
EMPLOYEE_ROLE = "employee_role"

EMPLOYEE_NAME_INDEX = "employee_name_index"


class GroupType(str, Enum):
    """Level of a group in the organisation."""

    ORGANIZATION = "organization"
    DEPARTMENT = "department"
    TEAM = "team"


class EmployeeRole(str, Enum):
    """Job function; the value doubles as the employee id prefix."""

    CEO = "ceo"
    DIRECTOR = "director"
    MANAGER = "manager"
    SOFTWARE_DEVELOPMENT_ENGINEER = "sde"
    SOFTWARE_DEVELOPMENT_ENGINEER_IN_TEST = "sdet"
    DATA_SCIENTIST = "datascientist"


class OfficeType(str, Enum):
    """Kind of office; the value doubles as the office id prefix."""

    HEADQUARTERS = "headquarter"
    ENGINEERING_OFFICE = "engineering_office"
    RESEARCH_OFFICE = "research_office"
