"""
Unit tests for RoleAssignmentService using the in-memory repository.

Covers listing (join, teacher filter, unknown staff), form expansion and the
save/edit/delete use cases including the revert-to-teacher rule.
"""
from __future__ import annotations

import pytest

from school_context.assignments.models import AssignmentForm
from school_context.assignments.repo import InMemoryAssignmentRepo
from school_context.assignments.scope import ScopeAggregator
from school_context.assignments.service import RoleAssignmentService, expand_form, service_from_config
from school_context.config import ContextConfig
from school_context.errors import FetchError, ValidationError
from school_context.notifications import CollectingNotifier

SCHOOL = "school-1"


def _repo() -> InMemoryAssignmentRepo:
    repo = InMemoryAssignmentRepo()
    repo.staff = {
        "u1": {"user_id": "u1", "school_id": SCHOOL, "name": "Hana Haddad", "role": "head-of-section"},
        "u2": {"user_id": "u2", "school_id": SCHOOL, "name": "Tom Teacher", "role": "teacher"},
        "u3": {
            "user_id": "u3",
            "school_id": SCHOOL,
            "name": "Sami Saleh",
            "role": "subject-coordinator",
            "secondary_role": "head-of-section",
            "email": "sami@example.org",
        },
    }
    repo.subjects = [{"id": "s1", "school_id": SCHOOL, "name": "Physics"}]
    repo.assignments = [
        {"id": "1", "school_id": SCHOOL, "user_id": "u1", "major": "Science"},
        {"id": "2", "school_id": SCHOOL, "user_id": "u2", "major": "Arts"},
        {"id": "3", "school_id": SCHOOL, "user_id": "u1", "major": "Science", "class_desc": "10A"},
        {"id": "4", "school_id": SCHOOL, "user_id": "u3", "subject_id": "s1"},
        {"id": "5", "school_id": SCHOOL, "user_id": "u9", "major": "Arts"},
        {"id": "6", "school_id": "school-2", "user_id": "u1", "major": "Elsewhere"},
    ]
    return repo


def _service(repo=None):
    notifier = CollectingNotifier()
    svc = RoleAssignmentService(repo=repo or _repo(), aggregator=ScopeAggregator(), notifier=notifier)
    return svc, notifier


@pytest.mark.anyio
async def test_list_groups_joins_profiles_and_hides_teachers():
    svc, _ = _service()

    groups = await svc.list_groups(SCHOOL)

    assert [g.user_id for g in groups] == ["u1", "u3", "u9"]
    by_user = {g.user_id: g for g in groups}
    assert by_user["u1"].scope == "Science; Science / 10A"
    assert by_user["u1"].name == "Hana Haddad"
    assert by_user["u3"].label == "Subject: Physics"
    assert by_user["u3"].role_label == "Subject Coordinator & Head of Section"
    # Staff rows that do not resolve get a placeholder profile
    assert by_user["u9"].name == "Unknown Staff"
    assert by_user["u9"].scope == "General Access"
    assert by_user["u9"].representative.role == "N/A"


@pytest.mark.anyio
async def test_list_groups_fetch_failure_notifies_and_returns_empty():
    class _Failing(InMemoryAssignmentRepo):
        async def list_assignments(self, *, institution_id):
            raise FetchError("assignments_fetch_failed")

    svc, notifier = _service(_Failing())

    assert await svc.list_groups(SCHOOL) == []
    [note] = notifier.items
    assert note.level == "error"
    assert note.title == "Error fetching assignments"
    assert note.description == "assignments_fetch_failed"


def test_expand_form_is_cartesian_product_of_selected_levels():
    form = AssignmentForm(
        user_id="u1",
        role="head-of-section",
        majors=["Science", "Arts"],
        groups=["G1", "G2"],
        classes=["10A"],
    )

    rows = expand_form(form)

    assert len(rows) == 4
    assert rows[0] == {"subject_id": None, "major": "Science", "group_desc": "G1", "class_desc": "10A"}
    assert {(r["major"], r["group_desc"]) for r in rows} == {
        ("Science", "G1"),
        ("Science", "G2"),
        ("Arts", "G1"),
        ("Arts", "G2"),
    }


def test_expand_form_stops_at_first_empty_level():
    form = AssignmentForm(user_id="u1", role="head-of-section", majors=["Science", " ", "Science"], classes=["10A"])

    assert expand_form(form) == [{"subject_id": None, "major": "Science"}]


def test_expand_form_without_majors():
    assert expand_form(AssignmentForm(user_id="u1", role="teacher")) == []
    assert expand_form(AssignmentForm(user_id="u1", role="subject-coordinator", subject_id="s1")) == [
        {"subject_id": "s1"}
    ]


@pytest.mark.anyio
async def test_save_assignment_replaces_rows_and_updates_role():
    repo = _repo()
    svc, notifier = _service(repo)
    form = AssignmentForm(user_id=" u2 ", role="academic-director", majors=["Science", "Arts"])

    rows = await svc.save_assignment(SCHOOL, form)

    assert [r["major"] for r in rows] == ["Science", "Arts"]
    mine = [r for r in repo.assignments if r["user_id"] == "u2" and r["school_id"] == SCHOOL]
    assert sorted(r["major"] for r in mine) == ["Arts", "Science"]
    assert repo.staff["u2"]["role"] == "academic-director"
    assert repo.staff["u2"]["name"] == "Tom Teacher"
    # Caller's form is left untouched
    assert form.user_id == " u2 "
    assert notifier.items[-1].description == "Role assignment saved."

    groups = await svc.list_groups(SCHOOL)
    assert {g.user_id: g.scope for g in groups}["u2"] == "Science, Arts"


@pytest.mark.anyio
async def test_save_assignment_validates_input():
    svc, notifier = _service()

    with pytest.raises(ValidationError):
        await svc.save_assignment(SCHOOL, AssignmentForm(user_id="  ", role="teacher"))
    with pytest.raises(ValidationError):
        await svc.save_assignment(SCHOOL, AssignmentForm(user_id="u1", role="janitor"))
    with pytest.raises(ValidationError):
        await svc.save_assignment(SCHOOL, AssignmentForm(user_id="u1", role="teacher", secondary_role="janitor"))
    with pytest.raises(LookupError):
        await svc.save_assignment(SCHOOL, AssignmentForm(user_id="nobody", role="teacher"))
    assert notifier.items == []


@pytest.mark.anyio
async def test_edit_group_prefills_form_from_all_records():
    svc, _ = _service()
    groups = {g.user_id: g for g in await svc.list_groups(SCHOOL)}

    form = await svc.edit_group(SCHOOL, groups["u1"])

    assert form.user_id == "u1"
    assert form.role == "head-of-section"
    assert form.majors == ["Science"]
    assert form.classes == ["10A"]
    assert form.groups == []

    coordinator = await svc.edit_group(SCHOOL, groups["u3"])
    assert coordinator.subject_id == "s1"
    assert coordinator.secondary_role == "head-of-section"


@pytest.mark.anyio
async def test_delete_group_removes_rows_and_reverts_to_teacher():
    repo = _repo()
    svc, notifier = _service(repo)
    groups = {g.user_id: g for g in await svc.list_groups(SCHOOL)}

    deleted = await svc.delete_group(SCHOOL, groups["u3"])

    assert deleted == 1
    assert not [r for r in repo.assignments if r["user_id"] == "u3"]
    assert repo.staff["u3"]["role"] == "teacher"
    assert repo.staff["u3"]["secondary_role"] is None
    assert repo.staff["u3"]["email"] == "sami@example.org"
    assert notifier.items[-1].description == "Assignment deleted. Role reverted to Teacher."
    # Other institutions keep their rows
    assert [r["id"] for r in repo.assignments if r["user_id"] == "u1"] == ["1", "3", "6"]

    with pytest.raises(LookupError):
        await svc.delete_group(SCHOOL, groups["u3"])


def test_service_from_config_uses_configured_limit():
    config = ContextConfig(
        env="dev",
        store="memory",
        database_url=None,
        selection_table="public.period_selections",
        head_scope_limit=3,
    )

    svc = service_from_config(config)

    assert isinstance(svc.repo, InMemoryAssignmentRepo)
    assert svc.aggregator.head_scope_limit == 3
