from datetime import timedelta

import httpx
import pytest

from examprep.core.exceptions import Conflict, EmailDeliveryError, Expired, InvalidCode, NotFound, ValidationError
from examprep.core.mailer import Mailer
from examprep.core.otp import hash_otp
from examprep.core.security import decrypt_payload, verify_password
from examprep.core.timezone import get_ist_now
from examprep.models.email_otp import EmailOTP
from examprep.models.identity import Identity
from examprep.models.student_profile import StudentProfile
from examprep.services.identity_service import IdentityService
from examprep.services.otp_service import OTPService

EMAIL = "s@x.com"


def registration(**overrides):
    data = {
        "email": "S@X.com",
        "first_name": "Asha",
        "last_name": "Rao",
        "class_type": "11th",
        "exam_preference": "JEE",
        "phone": "9999999999",
        "password": "secret1",
    }
    data.update(overrides)
    return data


def wrong_code(code):
    return "000000" if code != "000000" else "111111"


def test_issue_then_verify_creates_student(db, mailer):
    issued = OTPService.issue(db, mailer, registration())
    code = mailer.last_code(EMAIL)

    identity = OTPService.verify(db, EMAIL, code)

    assert issued.email == EMAIL
    assert issued.expires_in_seconds == 120
    assert identity.role == "student"
    assert identity.first_name == "Asha"
    assert verify_password("secret1", identity.password_hash)
    assert db.query(StudentProfile).filter(StudentProfile.user_id == identity.id).count() == 1
    assert db.query(EmailOTP).count() == 0
    assert IdentityService.resolve_role(db, EMAIL).role == "student"


def test_code_cannot_be_used_twice(db, mailer):
    OTPService.issue(db, mailer, registration())
    code = mailer.last_code(EMAIL)
    OTPService.verify(db, EMAIL, code)

    with pytest.raises(InvalidCode):
        OTPService.verify(db, EMAIL, code)
    assert db.query(Identity).count() == 1


def test_payload_is_encrypted_without_plaintext_password(db, mailer):
    OTPService.issue(db, mailer, registration(password="hunter22"))

    record = db.query(EmailOTP).one()
    payload = decrypt_payload(record.payload)

    assert "hunter22" not in record.payload
    assert "password" not in payload
    assert verify_password("hunter22", payload["password_hash"])
    assert record.otp_hash == hash_otp(mailer.last_code(EMAIL))


def test_expired_code_is_distinct_from_invalid(db, mailer):
    OTPService.issue(db, mailer, registration())
    code = mailer.last_code(EMAIL)
    record = db.query(EmailOTP).one()
    record.expires_at = get_ist_now() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(InvalidCode):
        OTPService.verify(db, EMAIL, wrong_code(code))
    with pytest.raises(Expired):
        OTPService.verify(db, EMAIL, code)

    assert db.query(EmailOTP).count() == 0
    assert db.query(Identity).count() == 0


@pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", "", "123456\n", "\u0661\u0662\u0663\u0664\u0665\u0666"])
def test_malformed_code_rejected(db, mailer, code):
    OTPService.issue(db, mailer, registration())

    with pytest.raises(ValidationError):
        OTPService.verify(db, EMAIL, code)
    assert db.query(EmailOTP).one().attempts == 0


def test_attempts_are_capped(db, mailer):
    OTPService.issue(db, mailer, registration())
    code = mailer.last_code(EMAIL)
    bad = wrong_code(code)

    for _ in range(4):
        with pytest.raises(InvalidCode) as exc:
            OTPService.verify(db, EMAIL, bad)
        assert exc.value.code == "INVALID_CODE"

    with pytest.raises(InvalidCode) as exc:
        OTPService.verify(db, EMAIL, bad)
    assert exc.value.code == "ATTEMPTS_EXCEEDED"

    # the record is gone, so even the right code no longer works
    with pytest.raises(InvalidCode):
        OTPService.verify(db, EMAIL, code)
    assert db.query(Identity).count() == 0


def test_delivery_failure_leaves_no_live_code(db, mailer):
    mailer.fail = True

    with pytest.raises(EmailDeliveryError):
        OTPService.issue(db, mailer, registration())
    assert db.query(EmailOTP).count() == 0


def test_resend_supersedes_previous_code(db, mailer):
    OTPService.issue(db, mailer, registration())
    first = mailer.last_code(EMAIL)

    OTPService.resend(db, mailer, EMAIL)
    second = mailer.last_code(EMAIL)

    assert len(mailer.sent) == 2
    assert db.query(EmailOTP).count() == 1
    if first != second:
        with pytest.raises(InvalidCode):
            OTPService.verify(db, EMAIL, first)
    identity = OTPService.verify(db, EMAIL, second)
    assert identity.last_name == "Rao"


def test_failed_resend_keeps_previous_code(db, mailer):
    OTPService.issue(db, mailer, registration())
    first = mailer.last_code(EMAIL)
    mailer.fail = True

    with pytest.raises(EmailDeliveryError):
        OTPService.resend(db, mailer, EMAIL)

    assert db.query(EmailOTP).count() == 1
    assert OTPService.verify(db, EMAIL, first).email == EMAIL


def test_resend_without_pending_registration(db, mailer):
    with pytest.raises(NotFound) as exc:
        OTPService.resend(db, mailer, EMAIL)
    assert exc.value.code == "NO_PENDING_VERIFICATION"


def test_issue_for_taken_email(db, mailer, make_identity):
    make_identity(EMAIL)

    with pytest.raises(Conflict):
        OTPService.issue(db, mailer, registration())
    assert mailer.sent == []


def test_issue_for_legacy_profile_email(db, mailer):
    db.add(StudentProfile(user_id="legacy", email="S@x.com"))
    db.commit()

    with pytest.raises(Conflict):
        OTPService.issue(db, mailer, registration())


@pytest.mark.parametrize(
    "overrides",
    [
        {"first_name": ""},
        {"class_type": None},
        {"email": "not-an-email"},
        {"password": "12345"},
    ],
)
def test_issue_validation(db, mailer, overrides):
    with pytest.raises(ValidationError):
        OTPService.issue(db, mailer, registration(**overrides))
    assert db.query(EmailOTP).count() == 0


def test_verify_when_account_created_meanwhile(db, mailer, make_identity):
    OTPService.issue(db, mailer, registration())
    code = mailer.last_code(EMAIL)
    make_identity(EMAIL)

    with pytest.raises(Conflict):
        OTPService.verify(db, EMAIL, code)
    assert db.query(EmailOTP).count() == 0


def test_check_status(db, mailer):
    assert OTPService.check_status(db, EMAIL).pending is False

    OTPService.issue(db, mailer, registration())
    status = OTPService.check_status(db, EMAIL)
    assert status.pending is True
    assert 0 < status.remaining_seconds <= 120
    assert status.attempts == 0

    record = db.query(EmailOTP).one()
    record.expires_at = get_ist_now() - timedelta(seconds=5)
    db.commit()

    expired = OTPService.check_status(db, EMAIL)
    assert expired.pending is False
    assert expired.message == "OTP has expired"
    assert db.query(EmailOTP).count() == 0


def test_provider_accepting_with_empty_body_counts_as_sent(db, monkeypatch):
    monkeypatch.setattr(
        httpx, "post", lambda url, **_kwargs: httpx.Response(202, content=b"", request=httpx.Request("POST", url))
    )
    mailer = Mailer(api_url="https://mail.test/send", api_key="key")

    OTPService.issue(db, mailer, registration())
    issued = OTPService.issue(db, mailer, registration())

    records = db.query(EmailOTP).all()
    assert [record.id for record in records] == [issued.otp_id]
    assert OTPService.check_status(db, EMAIL).pending is True
