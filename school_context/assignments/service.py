"""Role assignment service layer (Clean Architecture boundary).

Why:
    Encapsulates the management use cases (list/save/edit/delete) around the
    ScopeAggregator so UI adapters stay thin and the join, expansion and
    revert rules can be unit-tested against a fake repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import itertools
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

from school_context.assignments.models import (
    AssignmentForm,
    RoleAssignmentRecord,
    Subject,
    record_from_row,
)
from school_context.assignments.repo import AssignmentRepoProtocol, InMemoryAssignmentRepo
from school_context.assignments.scope import AssignmentGroup, ScopeAggregator
from school_context.config import ContextConfig
from school_context.errors import FetchError, ValidationError
from school_context.identity_access.domain import STAFF_ROLES, TEACHER, UNKNOWN_STAFF_NAME, StaffProfile
from school_context.notifications import LoggingNotifier, Notifier, error, info

_log = logging.getLogger("school_context.assignments")

GroupLike = Union[AssignmentGroup, Sequence[RoleAssignmentRecord]]


def _clean(values: Optional[Iterable[object]]) -> List[str]:
    out: List[str] = []
    for v in values or []:
        text = str(v).strip() if v is not None else ""
        if text and text not in out:
            out.append(text)
    return out


def _normalize_role(value: object, *, required: bool) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError("invalid_role")
        return None
    if not isinstance(value, str) or value.strip() not in STAFF_ROLES:
        raise ValidationError("invalid_role")
    return value.strip()


def expand_form(form: AssignmentForm) -> List[dict]:
    """Expand a form into one row per scope unit.

    Rows are the cartesian product of majors x groups x classes x sections,
    descending only while each level has a selection. Without majors a single
    unscoped row is produced, except for plain teachers who get none.
    """
    base = {"subject_id": (str(form.subject_id).strip() or None) if form.subject_id is not None else None}
    levels: List[List[tuple]] = []
    for column, values in (
        ("major", form.majors),
        ("group_desc", form.groups),
        ("class_desc", form.classes),
        ("section_name", form.sections),
    ):
        cleaned = _clean(values)
        if not cleaned:
            break
        levels.append([(column, v) for v in cleaned])
    if not levels:
        return [] if form.role == TEACHER else [dict(base)]
    return [{**base, **dict(combo)} for combo in itertools.product(*levels)]


def _profile_from_row(row: dict) -> StaffProfile:
    return StaffProfile(
        user_id=str(row.get("user_id") or ""),
        name=str(row.get("name") or UNKNOWN_STAFF_NAME),
        role=str(row.get("role") or "N/A"),
        secondary_role=row.get("secondary_role") or None,
        email=row.get("email") or None,
    )


def _representative(group: GroupLike) -> RoleAssignmentRecord:
    if isinstance(group, AssignmentGroup):
        return group.representative
    if not group:
        raise LookupError("assignment_not_found")
    return group[0]


@dataclass
class RoleAssignmentService:
    """Use cases for role assignments (framework-independent)."""

    repo: AssignmentRepoProtocol
    aggregator: ScopeAggregator = field(default_factory=ScopeAggregator)
    notifier: Notifier = field(default_factory=LoggingNotifier)

    async def list_records(self, institution_id: str) -> List[RoleAssignmentRecord]:
        """Assignment rows joined with staff profiles and subjects.

        Rows of unknown staff get an "Unknown Staff" placeholder profile.
        """
        rows = await self.repo.list_assignments(institution_id=institution_id)
        subjects: Dict[str, Subject] = {
            str(s["id"]): Subject(id=str(s["id"]), name=str(s.get("name") or ""))
            for s in await self.repo.list_subjects(institution_id=institution_id)
        }
        staff: Dict[str, StaffProfile] = {
            str(s["user_id"]): _profile_from_row(s) for s in await self.repo.list_staff(institution_id=institution_id)
        }
        records: List[RoleAssignmentRecord] = []
        for row in rows:
            user_id = str(row.get("user_id") or "")
            profile = staff.get(user_id) or StaffProfile(user_id=user_id, name=UNKNOWN_STAFF_NAME, role="N/A")
            subject_id = row.get("subject_id")
            subject = subjects.get(str(subject_id)) if subject_id is not None else None
            records.append(record_from_row(row, profile=profile, subject=subject))
        return records

    async def list_groups(self, institution_id: str) -> List[AssignmentGroup]:
        """Grouped, annotated assignments of non-teacher staff.

        Fetch errors degrade to an empty list plus a notification.
        """
        try:
            records = await self.list_records(institution_id)
        except FetchError as exc:
            _log.warning("list_assignments failed: %s", exc.code)
            self.notifier.notify(error("Error fetching assignments", exc.code))
            return []
        return self.aggregator.summarize(r for r in records if r.role != TEACHER)

    async def save_assignment(self, institution_id: str, form: AssignmentForm) -> List[dict]:
        """Replace all of a staff member's scope rows and update their role."""
        user_id = (form.user_id or "").strip()
        if not user_id:
            raise ValidationError("invalid_user_id")
        form = replace(
            form,
            user_id=user_id,
            role=_normalize_role(form.role, required=True),
            secondary_role=_normalize_role(form.secondary_role, required=False),
        )
        staff = {str(s["user_id"]): s for s in await self.repo.list_staff(institution_id=institution_id)}
        member = staff.get(user_id)
        if member is None:
            raise LookupError("staff_not_found")

        rows = expand_form(form)
        await self.repo.replace_assignments(institution_id=institution_id, user_id=user_id, rows=rows)
        await self.repo.upsert_staff_role(
            institution_id=institution_id,
            user_id=user_id,
            role=form.role,
            secondary_role=form.secondary_role,
            name=member.get("name"),
            email=member.get("email"),
        )
        _log.info("saved %d assignment rows for user=%s", len(rows), user_id[-6:])
        self.notifier.notify(info("Success", "Role assignment saved."))
        return rows

    async def edit_group(self, institution_id: str, group: GroupLike) -> AssignmentForm:
        """Pre-fill an edit form from every record of the group's staff member."""
        rep = _representative(group)
        records = [r for r in await self.list_records(institution_id) if r.user_id == rep.user_id]
        if not records:
            raise LookupError("assignment_not_found")
        return AssignmentForm(
            user_id=rep.user_id,
            role=rep.role or TEACHER,
            secondary_role=rep.secondary_role,
            majors=_clean(r.major for r in records),
            groups=_clean(r.group_desc for r in records),
            classes=_clean(r.class_desc for r in records),
            sections=_clean(r.section_name for r in records),
            subject_id=next((r.subject_id for r in records if r.subject_id), None),
        )

    async def delete_group(self, institution_id: str, group: GroupLike) -> int:
        """Remove every scope row of the staff member and revert them to teacher."""
        rep = _representative(group)
        deleted = await self.repo.delete_assignments(institution_id=institution_id, user_id=rep.user_id)
        if not deleted:
            raise LookupError("assignment_not_found")
        await self.repo.upsert_staff_role(
            institution_id=institution_id,
            user_id=rep.user_id,
            role=TEACHER,
            secondary_role=None,
            name=None,
            email=None,
        )
        _log.info("deleted %d assignment rows for user=%s", deleted, rep.user_id[-6:])
        self.notifier.notify(info("Success", "Assignment deleted. Role reverted to Teacher."))
        return deleted



def service_from_config(
    config: ContextConfig,
    *,
    notifier: Notifier | None = None,
    repo: Optional[AssignmentRepoProtocol] = None,
) -> RoleAssignmentService:
    """Wire the service with the configured store and summary limit."""
    if repo is None:
        if config.store == "db":
            from school_context.assignments.repo_db import DBAssignmentRepo

            repo = DBAssignmentRepo(config.database_url)
        else:
            repo = InMemoryAssignmentRepo()
    return RoleAssignmentService(
        repo=repo,
        aggregator=ScopeAggregator(head_scope_limit=config.head_scope_limit),
        notifier=notifier or LoggingNotifier(),
    )


__all__ = ["RoleAssignmentService", "expand_form", "service_from_config"]
