"""
Role assignment records and the closed set of role kinds.

One record is one grant: a staff member (`user_id`) plus at most one scope
unit. A director responsible for three majors has three records. All records
of one user share the same joined staff profile (role, secondary role).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

from school_context.identity_access.domain import (
    ACADEMIC_DIRECTOR,
    HEAD_OF_SECTION,
    SCHOOL_ADMIN,
    SUBJECT_COORDINATOR,
    TEACHER,
    StaffProfile,
)


class RoleKind(str, Enum):
    ACADEMIC_DIRECTOR = ACADEMIC_DIRECTOR
    HEAD_OF_SECTION = HEAD_OF_SECTION
    SUBJECT_COORDINATOR = SUBJECT_COORDINATOR
    TEACHER = TEACHER
    SCHOOL_ADMIN = SCHOOL_ADMIN
    OTHER = "other"

    @classmethod
    def of(cls, role: Optional[str]) -> "RoleKind":
        """Map a role string to its kind; unknown roles become OTHER."""
        try:
            return cls(role)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class Subject:
    id: str
    name: str


@dataclass(frozen=True)
class RoleAssignmentRecord:
    user_id: str
    id: Optional[str] = None
    institution_id: Optional[str] = None
    major: Optional[str] = None
    group_desc: Optional[str] = None
    class_desc: Optional[str] = None
    section_name: Optional[str] = None
    subject_id: Optional[str] = None
    # Joined data; None when the join did not resolve
    profile: Optional[StaffProfile] = None
    subject: Optional[Subject] = None

    @property
    def role(self) -> Optional[str]:
        return self.profile.role if self.profile else None

    @property
    def secondary_role(self) -> Optional[str]:
        return self.profile.secondary_role if self.profile else None

    @property
    def kind(self) -> RoleKind:
        return RoleKind.of(self.role)

    def scope_parts(self) -> List[str]:
        """Non-empty scope dimensions, outermost first."""
        return [p for p in (self.major, self.group_desc, self.class_desc, self.section_name) if p]


def _opt(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def record_from_row(
    row: Mapping[str, Any],
    *,
    profile: Optional[StaffProfile] = None,
    subject: Optional[Subject] = None,
) -> RoleAssignmentRecord:
    return RoleAssignmentRecord(
        user_id=str(row.get("user_id") or ""),
        id=_opt(row.get("id")),
        institution_id=_opt(row.get("school_id")),
        major=_opt(row.get("major")),
        group_desc=_opt(row.get("group_desc")),
        class_desc=_opt(row.get("class_desc")),
        section_name=_opt(row.get("section_name")),
        subject_id=_opt(row.get("subject_id")),
        profile=profile,
        subject=subject,
    )


@dataclass
class AssignmentForm:
    """Edit form state for one staff member's role and scopes."""

    user_id: str
    role: str
    secondary_role: Optional[str] = None
    majors: List[str] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    sections: List[str] = field(default_factory=list)
    subject_id: Optional[str] = None


__all__ = [
    "RoleKind",
    "Subject",
    "RoleAssignmentRecord",
    "record_from_row",
    "AssignmentForm",
]
