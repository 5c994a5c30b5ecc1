"""
Access decisions for gated batch content.

Every content endpoint goes through `authorize` and `shape`; nothing else
decides whether a viewer may see lecture bodies, video or PDF links.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from examprep.services.enrollment_service import EnrollmentLedger, EnrollmentStatus

ROLE_GUEST = "guest"


@dataclass(frozen=True)
class Viewer:
    role: str
    student_id: Optional[str] = None

    @classmethod
    def guest(cls) -> "Viewer":
        return cls(ROLE_GUEST)


@dataclass(frozen=True)
class Resource:
    batch_id: int


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str


def can_access(viewer: Viewer, resource: Resource, enrollment: Optional[EnrollmentStatus]) -> AccessDecision:
    """Pure decision from the viewer's role and the ledger status for resource.batch_id."""
    if viewer.role == "admin":
        return AccessDecision(True, "admin")

    if viewer.role == "student" and viewer.student_id:
        if enrollment is not None and enrollment.is_enrolled:
            return AccessDecision(True, "enrolled")
        return AccessDecision(False, "not_enrolled")

    return AccessDecision(False, "unauthenticated")


def authorize(db: Session, viewer: Viewer, batch_id: int) -> AccessDecision:
    """Read the ledger fresh and decide."""
    enrollment = None
    if viewer.role == "student" and viewer.student_id:
        enrollment = EnrollmentLedger.get_status(db, viewer.student_id, batch_id)
    return can_access(viewer, Resource(batch_id), enrollment)


def shape(item: dict, decision: AccessDecision, gated_fields: Iterable[str]) -> dict:
    """Strip gated fields server-side when access is denied."""
    if decision.allowed:
        return {**item, "locked": False}
    hidden = set(gated_fields)
    visible = {key: value for key, value in item.items() if key not in hidden}
    visible["locked"] = True
    return visible
