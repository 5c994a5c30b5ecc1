import hashlib
import json

import bcrypt
from cryptography.fernet import Fernet

from examprep.core.config import settings

fernet = Fernet(settings.FERNET_KEY)


def _sha256_hex(value: str) -> bytes:
    # bcrypt only looks at the first 72 bytes, so pre-hash to a fixed 64
    return hashlib.sha256(value.encode("utf-8")).hexdigest().encode("ascii")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_sha256_hex(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(_sha256_hex(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def encrypt_payload(payload: dict) -> str:
    return fernet.encrypt(json.dumps(payload).encode()).decode()


def decrypt_payload(token: str) -> dict:
    return json.loads(fernet.decrypt(token.encode()).decode())
