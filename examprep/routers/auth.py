from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from examprep.core.auth import create_access_token, get_current_identity
from examprep.core.database import get_db
from examprep.core.exceptions import ValidationError
from examprep.models.identity import Identity
from examprep.schemas.auth import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    RoleCheckRequest,
    RoleCheckResponse,
)
from examprep.services.identity_service import ROLE_ADMIN, ROLE_NONE, ROLE_STUDENT, IdentityService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/role-check", response_model=RoleCheckResponse)
def role_check(body: RoleCheckRequest, db: Session = Depends(get_db)):
    """Tell the login page which sign-in flow an email belongs to."""
    if not body.email:
        raise ValidationError("Email is required")

    resolution = IdentityService.resolve_role(db, body.email)
    if resolution.role == ROLE_NONE:
        return RoleCheckResponse(success=False)

    return RoleCheckResponse(
        success=True,
        userType=resolution.role,
        role=resolution.display_role,
        email=body.email.strip().lower(),
    )


@router.post("/student/login", response_model=LoginResponse)
def student_login(body: LoginRequest, db: Session = Depends(get_db)):
    identity = IdentityService.login(db, body.email, body.password, required_role=ROLE_STUDENT)
    return LoginResponse(access_token=create_access_token(identity), role=identity.role)


@router.post("/admin/login", response_model=LoginResponse)
def admin_login(body: LoginRequest, db: Session = Depends(get_db)):
    identity = IdentityService.login(db, body.email, body.password, required_role=ROLE_ADMIN)
    return LoginResponse(access_token=create_access_token(identity), role=identity.role)


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_identity)):
    return identity
