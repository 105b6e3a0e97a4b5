"""
Identity domain constants and the read-only actor view.

Why:
- Centralize staff roles so the period and assignment contexts agree on names.
- Keep the actor shape minimal: the resolver layers only need the institution
  and the role, never credentials or tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

ACADEMIC_DIRECTOR = "academic-director"
HEAD_OF_SECTION = "head-of-section"
SUBJECT_COORDINATOR = "subject-coordinator"
TEACHER = "teacher"
SCHOOL_ADMIN = "school-admin"

# Immutable to prevent accidental mutation.
STAFF_ROLES = frozenset({ACADEMIC_DIRECTOR, HEAD_OF_SECTION, SUBJECT_COORDINATOR, TEACHER, SCHOOL_ADMIN})

ROLE_DISPLAY_NAMES: Mapping[str, str] = {
    ACADEMIC_DIRECTOR: "Academic Director",
    HEAD_OF_SECTION: "Head of Section",
    SUBJECT_COORDINATOR: "Subject Coordinator",
    TEACHER: "Teacher",
    SCHOOL_ADMIN: "School Admin",
}


def role_display_name(role: str | None) -> str:
    if not role:
        return ""
    return ROLE_DISPLAY_NAMES.get(role, role)


def role_label(role: str | None, secondary_role: str | None = None) -> str:
    """Render "<primary> & <secondary>" as shown on staff cards."""
    primary = role_display_name(role)
    if secondary_role:
        return f"{primary} & {role_display_name(secondary_role)}"
    return primary


@dataclass(frozen=True)
class Actor:
    sub: str
    institution_id: Optional[str]
    role: Optional[str]
    secondary_role: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_school_admin(self) -> bool:
        return self.role == SCHOOL_ADMIN


UNKNOWN_STAFF_NAME = "Unknown Staff"


@dataclass(frozen=True)
class StaffProfile:
    """Staff member as shown next to role assignments."""

    user_id: str
    name: str
    role: str
    secondary_role: Optional[str] = None
    email: Optional[str] = None

    @property
    def label(self) -> str:
        return role_label(self.role, self.secondary_role)


def _claim(claims: Mapping[str, Any], key: str) -> Optional[str]:
    value = claims.get(key)
    if value is None:
        meta = claims.get("user_metadata")
        if isinstance(meta, Mapping):
            value = meta.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def actor_from_claims(claims: Mapping[str, Any]) -> Actor:
    """Build an `Actor` from already verified identity claims.

    Looks up `school_id`, `role` and `secondary_role` on the claims first and
    falls back to the nested `user_metadata` mapping. No verification happens
    here; callers pass claims from their authentication layer.
    """
    return Actor(
        sub=str(claims.get("sub") or ""),
        institution_id=_claim(claims, "school_id"),
        role=_claim(claims, "role"),
        secondary_role=_claim(claims, "secondary_role"),
        name=_claim(claims, "name"),
    )


__all__ = [
    "ACADEMIC_DIRECTOR",
    "HEAD_OF_SECTION",
    "SUBJECT_COORDINATOR",
    "TEACHER",
    "SCHOOL_ADMIN",
    "STAFF_ROLES",
    "ROLE_DISPLAY_NAMES",
    "role_display_name",
    "role_label",
    "Actor",
    "StaffProfile",
    "UNKNOWN_STAFF_NAME",
    "actor_from_claims",
]
