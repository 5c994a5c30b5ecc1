"""
OTP Service
Issues, resends and verifies email codes that gate student registration
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from examprep.core.config import settings
from examprep.core.exceptions import Conflict, EmailDeliveryError, Expired, InvalidCode, NotFound, ValidationError
from examprep.core.mailer import Mailer, send_otp_email
from examprep.core.otp import generate_otp, hash_otp, is_well_formed
from examprep.core.security import decrypt_payload, encrypt_payload, hash_password
from examprep.core.timezone import get_ist_now
from examprep.models.email_otp import EmailOTP
from examprep.models.identity import Identity
from examprep.services.identity_service import IdentityService, normalize_email, validate_email, validate_password

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PURPOSE = "email_verification"
REQUIRED_FIELDS = ("email", "first_name", "last_name", "class_type", "exam_preference", "password")


@dataclass(frozen=True)
class IssuedOTP:
    otp_id: str
    email: str
    expires_in_seconds: int


@dataclass(frozen=True)
class OTPStatus:
    pending: bool
    message: str
    remaining_seconds: Optional[int] = None
    attempts: Optional[int] = None


class OTPService:
    """Email OTP lifecycle: none -> issued -> verified | expired"""

    @staticmethod
    def _records(db: Session, email: str):
        return db.query(EmailOTP).filter(EmailOTP.email == email, EmailOTP.purpose == PURPOSE)

    @staticmethod
    def _build_payload(data: dict) -> dict:
        missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        email = validate_email(data["email"])
        validate_password(data["password"])

        return {
            "email": email,
            "first_name": data["first_name"].strip(),
            "last_name": data["last_name"].strip(),
            "class_type": data["class_type"],
            "exam_preference": data["exam_preference"],
            "phone": data.get("phone") or None,
            "password_hash": hash_password(data["password"]),
        }

    @staticmethod
    def _create_and_send(db: Session, mailer: Mailer, email: str, encrypted_payload: str, first_name: str) -> IssuedOTP:
        otp = generate_otp()
        expiry_seconds = settings.OTP_EXPIRY_SECONDS

        record = EmailOTP(
            id=str(uuid4()),
            email=email,
            otp_hash=hash_otp(otp),
            purpose=PURPOSE,
            payload=encrypted_payload,
            attempts=0,
            expires_at=get_ist_now() + timedelta(seconds=expiry_seconds),
        )
        db.add(record)
        db.commit()

        try:
            send_otp_email(mailer, email, otp, first_name, expiry_seconds)
        except EmailDeliveryError:
            # Never leave a live code the user was not told about
            OTPService._records(db, email).filter(EmailOTP.id == record.id).delete(synchronize_session=False)
            db.commit()
            logger.warning("OTP for %s rolled back after delivery failure", email)
            raise

        # Older unconsumed codes for this email are superseded
        (
            OTPService._records(db, email)
            .filter(EmailOTP.id != record.id, EmailOTP.verified_at.is_(None))
            .delete(synchronize_session=False)
        )
        db.commit()

        logger.info("OTP sent to %s", email)
        return IssuedOTP(otp_id=record.id, email=email, expires_in_seconds=expiry_seconds)

    @staticmethod
    def issue(db: Session, mailer: Mailer, data: dict) -> IssuedOTP:
        """
        Start a registration: validate the form, store it encrypted with a
        fresh code and email the code.
        """
        payload = OTPService._build_payload(data)
        email = payload["email"]

        if IdentityService.email_taken(db, email):
            raise Conflict("An account with this email already exists", code="EMAIL_EXISTS")

        return OTPService._create_and_send(db, mailer, email, encrypt_payload(payload), payload["first_name"])

    @staticmethod
    def resend(db: Session, mailer: Mailer, email: str) -> IssuedOTP:
        """Issue a new code carrying the pending registration of the newest record."""
        if not email:
            raise ValidationError("Email is required")
        email = normalize_email(email)

        latest = OTPService._records(db, email).order_by(EmailOTP.created_at.desc()).first()
        if not latest:
            raise NotFound("No pending verification found for this email", code="NO_PENDING_VERIFICATION")

        if IdentityService.email_taken(db, email):
            raise Conflict("An account with this email already exists", code="EMAIL_EXISTS")

        payload = decrypt_payload(latest.payload)
        return OTPService._create_and_send(db, mailer, email, latest.payload, payload.get("first_name", ""))

    @staticmethod
    def verify(db: Session, email: str, code: str) -> Identity:
        """
        Verify a code and create the student identity from its payload.

        Raises:
            ValidationError for a malformed code
            Expired when the code matches a record past its expiry
            InvalidCode for a wrong, unknown or already used code
        """
        if not email or not code:
            raise ValidationError("Email and OTP are required")
        if not is_well_formed(code):
            raise ValidationError("OTP must be a 6-digit number")

        email = normalize_email(email)
        now = get_ist_now()
        code_hash = hash_otp(code)

        candidate = (
            OTPService._records(db, email)
            .filter(EmailOTP.otp_hash == code_hash, EmailOTP.verified_at.is_(None))
            .order_by(EmailOTP.created_at.desc())
            .first()
        )
        if candidate and candidate.expires_at <= now:
            OTPService._records(db, email).filter(EmailOTP.id == candidate.id).delete(synchronize_session=False)
            db.commit()
            raise Expired("OTP has expired")

        if not candidate:
            OTPService._register_failed_attempt(db, email, now)
            raise InvalidCode("Invalid OTP")

        # Claim: first writer wins, a concurrent second verify updates nothing
        claimed = (
            OTPService._records(db, email)
            .filter(EmailOTP.id == candidate.id, EmailOTP.verified_at.is_(None))
            .update({"verified_at": now}, synchronize_session=False)
        )
        db.commit()
        if claimed == 0:
            raise InvalidCode("Invalid OTP")

        record_id = candidate.id
        payload = decrypt_payload(candidate.payload)
        try:
            identity = IdentityService.create_student(
                db,
                email=payload["email"],
                password_hash=payload["password_hash"],
                profile=payload,
            )
            IdentityService.create_profile(db, identity)
        finally:
            OTPService._records(db, email).filter(EmailOTP.id == record_id).delete(synchronize_session=False)
            db.commit()

        logger.info("Email %s verified, identity %s created", email, identity.id)
        return identity

    @staticmethod
    def _register_failed_attempt(db: Session, email: str, now):
        live = (
            OTPService._records(db, email)
            .filter(EmailOTP.verified_at.is_(None), EmailOTP.expires_at > now)
            .order_by(EmailOTP.created_at.desc())
            .first()
        )
        if not live:
            return

        (
            OTPService._records(db, email)
            .filter(EmailOTP.id == live.id)
            .update({"attempts": EmailOTP.attempts + 1}, synchronize_session=False)
        )
        db.commit()
        db.refresh(live)

        if live.attempts >= settings.OTP_MAX_ATTEMPTS:
            logger.warning("Email %s reached %s failed OTP attempts", email, live.attempts)
            OTPService._records(db, email).filter(EmailOTP.id == live.id).delete(synchronize_session=False)
            db.commit()
            raise InvalidCode(
                "Too many incorrect attempts. Please request a new code.",
                code="ATTEMPTS_EXCEEDED",
            )

    @staticmethod
    def check_status(db: Session, email: str) -> OTPStatus:
        if not email:
            raise ValidationError("Email is required")
        email = normalize_email(email)

        record = (
            OTPService._records(db, email)
            .filter(EmailOTP.verified_at.is_(None))
            .order_by(EmailOTP.created_at.desc())
            .first()
        )
        if not record:
            return OTPStatus(pending=False, message="No pending verification found")

        now = get_ist_now()
        if record.expires_at <= now:
            OTPService._records(db, email).filter(EmailOTP.id == record.id).delete(synchronize_session=False)
            db.commit()
            return OTPStatus(pending=False, message="OTP has expired")

        return OTPStatus(
            pending=True,
            message="OTP is valid and pending verification",
            remaining_seconds=max(0, int((record.expires_at - now).total_seconds())),
            attempts=record.attempts,
        )
