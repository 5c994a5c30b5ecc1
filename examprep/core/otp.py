import hashlib
import re
import secrets

OTP_PATTERN = re.compile(r"[0-9]{6}")


def generate_otp() -> str:
    return str(secrets.randbelow(900000) + 100000)


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.encode()).hexdigest()


def is_well_formed(otp: str) -> bool:
    return bool(otp) and OTP_PATTERN.fullmatch(otp) is not None
