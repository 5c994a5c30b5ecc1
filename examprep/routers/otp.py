import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examprep.core.auth import create_access_token
from examprep.core.database import get_db
from examprep.core.mailer import Mailer, get_mailer
from examprep.core.redis import RateLimiter
from examprep.schemas.otp import (
    OTPIssueRequest,
    OTPIssueResponse,
    OTPResendRequest,
    OTPStatusResponse,
    OTPVerifyRequest,
    OTPVerifyResponse,
    VerifiedUser,
)
from examprep.services.identity_service import normalize_email
from examprep.services.otp_service import OTPService

router = APIRouter(prefix="/api/v1/otp", tags=["otp"])

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@router.post("", response_model=OTPIssueResponse)
def issue_otp(
    body: OTPIssueRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    # Rate limit: max 5 registrations per email per 10 minutes
    RateLimiter.enforce(
        identifier=normalize_email(body.email),
        action="issue_otp",
        max_requests=5,
        window_seconds=600,
        message="Too many OTP requests.",
    )

    issued = OTPService.issue(db, mailer, body.model_dump())
    return OTPIssueResponse(
        message="Verification code sent to your email",
        email=issued.email,
        expiresIn=issued.expires_in_seconds,
    )


@router.put("", response_model=OTPIssueResponse)
def resend_otp(
    body: OTPResendRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Resend a code for a pending registration.
    Older unconsumed codes for the email stop working.
    """
    # Rate limit: max 3 resend requests per 10 minutes
    RateLimiter.enforce(
        identifier=normalize_email(body.email),
        action="resend_otp",
        max_requests=3,
        window_seconds=600,
        message="Too many OTP requests.",
    )

    issued = OTPService.resend(db, mailer, body.email)
    return OTPIssueResponse(
        message="New verification code sent to your email",
        email=issued.email,
        expiresIn=issued.expires_in_seconds,
    )


@router.post("/verify", response_model=OTPVerifyResponse)
def verify_otp(body: OTPVerifyRequest, db: Session = Depends(get_db)):
    # Rate limit: max 10 OTP verification attempts per 5 minutes
    RateLimiter.enforce(
        identifier=normalize_email(body.email),
        action="verify_otp",
        max_requests=10,
        window_seconds=300,
        message="Too many verification attempts.",
    )

    identity = OTPService.verify(db, body.email, body.otp)
    return OTPVerifyResponse(
        message="Email verified and account created successfully",
        user=VerifiedUser(
            id=identity.id,
            email=identity.email,
            firstName=identity.first_name,
            lastName=identity.last_name,
            classType=identity.class_type,
            examPreference=identity.exam_preference,
            role=identity.role,
        ),
        access_token=create_access_token(identity),
    )


@router.get("/status", response_model=OTPStatusResponse)
def otp_status(email: str = Query(None), db: Session = Depends(get_db)):
    status = OTPService.check_status(db, email)
    return OTPStatusResponse(
        hasPendingOTP=status.pending,
        message=status.message,
        timeRemaining=status.remaining_seconds,
        attempts=status.attempts,
    )
