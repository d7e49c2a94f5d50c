"""End-to-end org chart scenarios against the in-memory store."""

from __future__ import annotations

import pytest

from dirgraph.engine import all_of
from dirgraph.engine import attribute_in
from dirgraph.engine import has_facet
from dirgraph.models import AttributeKey
from dirgraph.models import EmployeeRole
from dirgraph.models import GroupType
from dirgraph.models import ObjectRef
from dirgraph.models import OfficeType
from dirgraph.models import org
from dirgraph.observability import operation_metrics_snapshot
from dirgraph.observability import reset_operation_metrics
from tests.scenarios.helpers.metrics import emit_scenario_metric
from tests.scenarios.helpers.org_chart import build_org_chart
from tests.scenarios.helpers.org_chart import SEATTLE
from tests.scenarios.helpers.reporting import build_failure_context

ENGINEERS = all_of(
    has_facet(org.EMPLOYEE_FACET),
    attribute_in(
        org.EMPLOYEE_FACET,
        org.EMPLOYEE_ROLE,
        {
            EmployeeRole.SOFTWARE_DEVELOPMENT_ENGINEER.value,
            EmployeeRole.SOFTWARE_DEVELOPMENT_ENGINEER_IN_TEST.value,
        },
    ),
)


@pytest.fixture()
async def chart(builder):
    reset_operation_metrics()
    chart = await build_org_chart(builder)
    yield chart
    emit_scenario_metric(scenario="org_chart", store="memory")


def _check(scenario, query, expected, actual):
    assert actual == expected, build_failure_context(
        scenario=scenario, query=query, expected=expected, actual=actual
    )


async def test_all_offices(chart, query_engine):
    offices = await query_engine.recursive_list("/locations", has_facet(org.OFFICE_FACET))
    paths = await query_engine.find_parent_paths_with_prefix("/locations", offices)
    _check("org_chart", "all offices", set(chart.offices), paths)


async def test_all_employees_in_seattle(chart, query_engine):
    employees = await query_engine.recursive_list(SEATTLE, has_facet(org.EMPLOYEE_FACET))
    paths = await query_engine.find_parent_paths_with_prefix("/locations", employees)
    _check(
        "org_chart",
        "employees in seattle",
        {f"{SEATTLE}/manager-2", f"{SEATTLE}/sde-1", f"{SEATTLE}/sde-2"},
        paths,
    )


async def test_offices_with_engineers(chart, query_engine):
    engineers = await query_engine.recursive_list("/organization", ENGINEERS)

    org_paths = await query_engine.find_parent_paths_with_prefix("/organization", engineers)
    _check(
        "org_chart",
        "sde and sdet",
        {
            "/organization/development/dev_ops/sde-1",
            "/organization/development/dev_ops/sde-2",
            "/organization/development/qa/sdet-1",
            "/organization/development/qa/sdet-2",
        },
        org_paths,
    )

    office_paths = await query_engine.find_parent_paths_with_prefix("/locations", engineers)
    _check(
        "org_chart",
        "offices with sde or sdet",
        {SEATTLE, "/locations/americas/usa/houston"},
        query_engine.parent_locations(office_paths),
    )


async def test_find_employee_by_name(chart, query_engine, index_engine):
    key = AttributeKey(facet=org.EMPLOYEE_FACET, name=org.EMPLOYEE_NAME)
    index = await index_engine.create_index("/organization", org.EMPLOYEE_NAME_INDEX, [key])
    employees = await query_engine.recursive_list("/organization", has_facet(org.EMPLOYEE_FACET))
    assert len(employees) == 12

    batch = await index_engine.attach_all_to_index(index, employees)
    assert batch.ok
    assert len(batch.attached) == 12

    herbert = await index_engine.get_by_exact_value(index, key, "herbert i.")
    paths = await query_engine.find_parent_paths_with_prefix("/organization", [herbert.ref])
    _check("org_chart", "employee herbert i.", {chart.employees["herbert i."]}, paths)

    assert operation_metrics_snapshot()["index.attach_batch"]["any"]["objects"] == 12
    assert "query.recursive_list" in operation_metrics_snapshot()


async def test_every_employee_has_two_locations(chart, query_engine):
    refs = [ObjectRef.path(path) for path in chart.employees.values()]
    org_paths = await query_engine.find_parent_paths_with_prefix("/organization", refs)
    office_paths = await query_engine.find_parent_paths_with_prefix("/locations", refs)
    assert len(org_paths) == 12
    assert len(office_paths) == 12
    assert query_engine.parent_locations(office_paths) == set(chart.offices)


async def test_team_member_with_office(builder, query_engine):
    await builder.create_group("/", "org", GroupType.ORGANIZATION)
    await builder.create_group("/org", "dept", GroupType.DEPARTMENT)
    await builder.create_group("/org/dept", "team", GroupType.TEAM)
    await builder.create_region("/", "loc")
    office1 = await builder.create_office("/loc", "office1", OfficeType.ENGINEERING_OFFICE)
    e1 = await builder.create_employee("/org/dept/team", "e1", EmployeeRole.MANAGER)
    await builder.link_employee_to_office(office1, e1)

    found = await query_engine.recursive_list("/org", has_facet(org.EMPLOYEE_FACET))

    assert len(found) == 1
    assert await query_engine.find_parent_paths_with_prefix("/loc", found) == {
        "/loc/office1/manager-1"
    }
    assert await query_engine.find_parent_paths_with_prefix("/org", found) == {
        "/org/dept/team/manager-1"
    }
