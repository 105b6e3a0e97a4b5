"""
ScopeAggregator: per-staff grouping and scope summaries of role assignments.

Why:
    Assignment rows arrive flat (one row per scope unit). Management lists
    show one entry per staff member with a single human-readable summary of
    what that member may see. Different roles carry different scope
    dimensions, so the summary is derived per role kind.

Rules:
    - academic-director: distinct majors, comma-joined; "All" when none.
    - head-of-section: per record "major / group / class / section" (non-empty
      parts only), de-duplicated; the first two are shown, "..." marks more.
      Records without any dimension contribute no entry, and a group made
      only of such records renders "All".
    - subject-coordinator: the first record's subject name, "N/A" if absent.
    - anything else: "General Access".
    - A group whose first record has no joined staff profile yields None and
      is skipped by list consumers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from school_context.assignments.models import RoleAssignmentRecord, RoleKind

ALL_LABEL = "All"
NOT_AVAILABLE = "N/A"
GENERAL_ACCESS = "General Access"
ELLIPSIS = "..."
HEAD_SCOPE_LIMIT_DEFAULT = 2

Group = Sequence[RoleAssignmentRecord]


def group(records: Iterable[RoleAssignmentRecord]) -> List[List[RoleAssignmentRecord]]:
    """One group per distinct user_id, in first-seen order."""
    buckets: Dict[str, List[RoleAssignmentRecord]] = {}
    for rec in records:
        buckets.setdefault(rec.user_id, []).append(rec)
    return list(buckets.values())


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _describe_director(records: Group, limit: int) -> str:
    majors = _unique(r.major for r in records if r.major)
    return ", ".join(majors) or ALL_LABEL


def _describe_head_of_section(records: Group, limit: int) -> str:
    scopes = _unique(s for s in (" / ".join(r.scope_parts()) for r in records) if s)
    if not scopes:
        return ALL_LABEL
    shown = "; ".join(scopes[:limit])
    return f"{shown}{ELLIPSIS}" if len(scopes) > limit else shown


def _describe_subject_coordinator(records: Group, limit: int) -> str:
    subject = records[0].subject
    return subject.name if subject and subject.name else NOT_AVAILABLE


def _describe_general(records: Group, limit: int) -> str:
    return GENERAL_ACCESS


_DESCRIBERS: Dict[RoleKind, Callable[[Group, int], str]] = {
    RoleKind.ACADEMIC_DIRECTOR: _describe_director,
    RoleKind.HEAD_OF_SECTION: _describe_head_of_section,
    RoleKind.SUBJECT_COORDINATOR: _describe_subject_coordinator,
    RoleKind.TEACHER: _describe_general,
    RoleKind.SCHOOL_ADMIN: _describe_general,
    RoleKind.OTHER: _describe_general,
}

# Prefixes used on staff cards; general access stands alone
_LABEL_PREFIXES: Dict[RoleKind, str] = {
    RoleKind.ACADEMIC_DIRECTOR: "Major(s): ",
    RoleKind.HEAD_OF_SECTION: "Scope(s): ",
    RoleKind.SUBJECT_COORDINATOR: "Subject: ",
}


def describe_scope(records: Group, *, head_scope_limit: int = HEAD_SCOPE_LIMIT_DEFAULT) -> Optional[str]:
    """Scope summary of one group, dispatched on the first record's role."""
    first = records[0] if records else None
    if first is None or first.profile is None:
        return None
    return _DESCRIBERS[first.kind](records, head_scope_limit)


def scope_label(records: Group, *, head_scope_limit: int = HEAD_SCOPE_LIMIT_DEFAULT) -> Optional[str]:
    """`describe_scope` with the card prefix ("Major(s): Science")."""
    summary = describe_scope(records, head_scope_limit=head_scope_limit)
    if summary is None:
        return None
    return _LABEL_PREFIXES.get(records[0].kind, "") + summary


@dataclass(frozen=True)
class AssignmentGroup:
    user_id: str
    records: List[RoleAssignmentRecord]
    scope: str
    label: str

    @property
    def representative(self) -> RoleAssignmentRecord:
        """Record standing in for the staff member in edit/delete actions."""
        return self.records[0]

    @property
    def name(self) -> str:
        profile = self.representative.profile
        return profile.name if profile else ""

    @property
    def role_label(self) -> str:
        profile = self.representative.profile
        return profile.label if profile else ""


class ScopeAggregator:
    def __init__(self, *, head_scope_limit: int = HEAD_SCOPE_LIMIT_DEFAULT) -> None:
        if head_scope_limit < 1:
            raise ValueError("invalid_head_scope_limit")
        self.head_scope_limit = head_scope_limit

    def group(self, records: Iterable[RoleAssignmentRecord]) -> List[List[RoleAssignmentRecord]]:
        return group(records)

    def describe_scope(self, records: Group) -> Optional[str]:
        return describe_scope(records, head_scope_limit=self.head_scope_limit)

    def summarize(self, records: Iterable[RoleAssignmentRecord]) -> List[AssignmentGroup]:
        """Group and annotate; groups without a joined profile are skipped."""
        out: List[AssignmentGroup] = []
        for members in self.group(records):
            scope = self.describe_scope(members)
            if scope is None:
                continue
            out.append(
                AssignmentGroup(
                    user_id=members[0].user_id,
                    records=members,
                    scope=scope,
                    label=scope_label(members, head_scope_limit=self.head_scope_limit) or scope,
                )
            )
        return out


__all__ = [
    "ALL_LABEL",
    "NOT_AVAILABLE",
    "GENERAL_ACCESS",
    "group",
    "describe_scope",
    "scope_label",
    "AssignmentGroup",
    "ScopeAggregator",
]
