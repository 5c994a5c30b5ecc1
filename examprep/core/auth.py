from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from examprep.core.config import settings
from examprep.core.database import get_db
from examprep.core.exceptions import Forbidden, Unauthorized
from examprep.models.identity import Identity
from examprep.services.access_service import Viewer

ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


def create_access_token(identity: Identity) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    payload = {"sub": identity.id, "email": identity.email, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


def verify_token(db: Session, token: str) -> Identity:
    """
    Decode a bearer token and load its identity.

    The role is never taken from the token; it is read from the identity row.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")

    identity_id = payload.get("sub")
    if not identity_id:
        raise Unauthorized("Invalid token")

    identity = db.get(Identity, identity_id)
    if not identity or not identity.is_active:
        raise Unauthorized("Invalid or expired token")
    return identity


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Identity:
    if credentials is None:
        raise Unauthorized("Unauthorized. Please login to continue.")
    return verify_token(db, credentials.credentials)


def get_current_viewer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Viewer:
    """Viewer for public content routes; no token means guest."""
    if credentials is None:
        return Viewer.guest()
    identity = verify_token(db, credentials.credentials)
    if identity.role == "student":
        return Viewer("student", identity.id)
    return Viewer(identity.role)


def require_student(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != "student":
        raise Forbidden("Student account required")
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != "admin":
        raise Forbidden("Admin access required")
    return identity
