from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examprep.core.auth import require_student
from examprep.core.database import get_db
from examprep.models.identity import Identity
from examprep.schemas.student import ProfileResponse, ProfileUpdateRequest
from examprep.services.identity_service import IdentityService

router = APIRouter(prefix="/api/v1/student", tags=["student"])


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    return ProfileResponse(profile=IdentityService.get_profile(db, student))


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdateRequest,
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    """Edit the caller's profile. Email and role are not editable here."""
    profile = IdentityService.update_profile(db, student, body.model_dump(exclude_unset=True))
    return ProfileResponse(profile=profile)
