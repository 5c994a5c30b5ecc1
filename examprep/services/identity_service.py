"""
Identity Registry
Resolves an email to a role and creates student / admin identities
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from examprep.core.exceptions import Conflict, Forbidden, Unauthorized, ValidationError
from examprep.core.security import hash_password, verify_password
from examprep.models.admin_slot import AdminSlot, SUPERADMIN_SLOT
from examprep.models.admin_user import AdminUser
from examprep.models.identity import Identity
from examprep.models.student_profile import StudentProfile

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
ROLE_NONE = "none"

IDENTITY_PROFILE_FIELDS = ("first_name", "last_name", "phone", "class_type", "exam_preference")


@dataclass(frozen=True)
class RoleResolution:
    role: str
    display_role: Optional[str] = None
    source: Optional[str] = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> str:
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    return email


def validate_password(password: str):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


class IdentityService:
    """Identity lookups and creation. `identities.role` is the only role ever written."""

    @staticmethod
    def lookup_by_email(db: Session, email: str) -> Optional[Identity]:
        return db.query(Identity).filter(Identity.email == normalize_email(email)).first()

    @staticmethod
    def get(db: Session, identity_id: str) -> Optional[Identity]:
        return db.get(Identity, identity_id)

    @staticmethod
    def resolve_role(db: Session, email: str) -> RoleResolution:
        """
        Resolve an email to admin / student / none.

        Read-only. Any lookup error resolves to none.
        """
        email = normalize_email(email)
        if not email:
            return RoleResolution(ROLE_NONE)

        try:
            identity = db.query(Identity).filter(Identity.email == email).first()
            if identity and identity.role == ROLE_ADMIN:
                return RoleResolution(ROLE_ADMIN, "superadmin", "identity")
            if identity and identity.role == ROLE_STUDENT:
                return RoleResolution(ROLE_STUDENT, "student", "identity")

            return IdentityService._resolve_legacy_role(db, email)
        except SQLAlchemyError as e:
            logger.error("Role lookup failed for %s: %s", email, str(e))
            return RoleResolution(ROLE_NONE)

    @staticmethod
    def _resolve_legacy_role(db: Session, email: str) -> RoleResolution:
        """
        Deprecated: rows written before roles lived on the identity record.
        Remove once admin_users and student_profiles are backfilled into identities.
        """
        admin = (
            db.query(AdminUser)
            .filter(func.lower(AdminUser.email) == email, AdminUser.is_active == True)
            .first()
        )
        if admin:
            logger.warning("Role for %s resolved from legacy admin_users table", email)
            return RoleResolution(ROLE_ADMIN, admin.role or "superadmin", "admin_users")

        profile = db.query(StudentProfile).filter(func.lower(StudentProfile.email) == email).first()
        if profile:
            logger.warning("Role for %s resolved from legacy student_profiles table", email)
            return RoleResolution(ROLE_STUDENT, "student", "student_profiles")

        return RoleResolution(ROLE_NONE)

    @staticmethod
    def email_taken(db: Session, email: str) -> bool:
        email = normalize_email(email)
        if IdentityService.lookup_by_email(db, email):
            return True
        return (
            db.query(StudentProfile.user_id)
            .filter(func.lower(StudentProfile.email) == email)
            .first()
            is not None
        )

    @staticmethod
    def create_student(db: Session, email: str, password_hash: str, profile: dict) -> Identity:
        """Create a student identity from an already-hashed password."""
        identity = Identity(
            id=str(uuid4()),
            email=normalize_email(email),
            role=ROLE_STUDENT,
            password_hash=password_hash,
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            phone=profile.get("phone"),
            class_type=profile.get("class_type"),
            exam_preference=profile.get("exam_preference"),
            is_active=True,
        )
        db.add(identity)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise Conflict("An account with this email already exists", code="EMAIL_EXISTS") from e
        db.refresh(identity)
        logger.info("Student identity %s created for %s", identity.id, identity.email)
        return identity

    @staticmethod
    def create_profile(db: Session, identity: Identity) -> bool:
        """Best-effort denormalized profile row; failure is logged, never raised."""
        profile = StudentProfile(
            user_id=identity.id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            class_type=identity.class_type,
            exam_preference=identity.exam_preference,
            phone=identity.phone,
        )
        db.add(profile)
        try:
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Profile creation failed for %s: %s", identity.id, str(e))
            return False

    @staticmethod
    def get_profile(db: Session, identity: Identity) -> dict:
        """Profile row when present, the identity's own fields otherwise."""
        profile = db.get(StudentProfile, identity.id)
        source = profile or identity
        return {
            "user_id": identity.id,
            "email": identity.email,
            "first_name": source.first_name,
            "last_name": source.last_name,
            "phone": source.phone,
            "class_type": source.class_type,
            "exam_preference": source.exam_preference,
            "school_name": profile.school_name if profile else None,
            "city": profile.city if profile else None,
            "state": profile.state if profile else None,
            "is_active": identity.is_active,
        }

    @staticmethod
    def update_profile(db: Session, identity: Identity, changes: dict) -> dict:
        """
        Apply profile edits to the profile row, creating it if missing.
        Fields the identity also carries are kept in step there.
        """
        for field in ("first_name", "last_name", "class_type", "exam_preference"):
            if field in changes and not (changes[field] or "").strip():
                raise ValidationError(f"{field} cannot be empty")

        profile = db.get(StudentProfile, identity.id)
        if profile is None:
            profile = StudentProfile(
                user_id=identity.id,
                email=identity.email,
                first_name=identity.first_name,
                last_name=identity.last_name,
                class_type=identity.class_type,
                exam_preference=identity.exam_preference,
                phone=identity.phone,
            )
            db.add(profile)

        for field, value in changes.items():
            setattr(profile, field, value)
            if field in IDENTITY_PROFILE_FIELDS:
                setattr(identity, field, value)

        db.commit()
        logger.info("Profile updated for %s", identity.id)
        return IdentityService.get_profile(db, identity)

    @staticmethod
    def create_admin(db: Session, email: str, password: str, first_name: str, last_name: str) -> Identity:
        """
        Create the single superadmin.

        The identity and the singleton AdminSlot row go in one transaction;
        a second admin collides on the slot primary key.
        """
        if not email or not password or not first_name or not last_name:
            raise ValidationError("Email, password, first name, and last name are required")
        email = validate_email(email)
        validate_password(password)

        if db.get(AdminSlot, SUPERADMIN_SLOT):
            raise Conflict("Superadmin already exists. Only one admin account is allowed.", code="ADMIN_EXISTS")
        if IdentityService.lookup_by_email(db, email):
            raise Conflict("An account with this email already exists", code="EMAIL_EXISTS")

        identity = Identity(
            id=str(uuid4()),
            email=email,
            role=ROLE_ADMIN,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            is_active=True,
        )
        db.add(identity)
        db.add(AdminSlot(slot=SUPERADMIN_SLOT, identity_id=identity.id))
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise Conflict("Superadmin already exists. Only one admin account is allowed.", code="ADMIN_EXISTS") from e

        db.refresh(identity)
        logger.info("Superadmin %s created for %s", identity.id, identity.email)
        return identity

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Identity:
        identity = IdentityService.lookup_by_email(db, email)
        if not identity or not identity.is_active or not verify_password(password or "", identity.password_hash):
            raise Unauthorized("Invalid email or password")
        return identity

    @staticmethod
    def login(db: Session, email: str, password: str, required_role: str) -> Identity:
        """
        Role-dispatched login. An account of the other role is refused with
        Forbidden before the password is checked.
        """
        resolution = IdentityService.resolve_role(db, email)
        if resolution.role not in (ROLE_NONE, required_role):
            raise Forbidden(f"This account cannot sign in as {required_role}")

        identity = IdentityService.authenticate(db, email, password)
        if identity.role != required_role:
            raise Forbidden(f"This account cannot sign in as {required_role}")
        return identity
