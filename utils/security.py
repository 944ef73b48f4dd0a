"""
Phone normalization and password hashing
"""
import re
import hashlib
import hmac
from werkzeug.security import generate_password_hash, check_password_hash

_LEGACY_HASH_RE = re.compile(r'^[0-9a-f]{64}$')


def normalize_phone(phone) -> str:
    """Strip every non-digit and keep the last 10 digits (national number).

    "+57 310-123-4567" -> "3101234567"
    """
    if not phone:
        return ''
    digits = re.sub(r'\D', '', str(phone))
    return digits[-10:]


def legacy_hash(password: str) -> str:
    """Unsalted SHA-256 hex digest used by accounts created before salted hashing"""
    return hashlib.sha256(password.encode('utf-8')).hexdigest()


def is_legacy_hash(password_hash: str) -> bool:
    return bool(password_hash) and _LEGACY_HASH_RE.match(password_hash) is not None


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Check a password against either a salted Werkzeug hash or a legacy digest"""
    if not password_hash or password is None:
        return False
    if is_legacy_hash(password_hash):
        return hmac.compare_digest(password_hash, legacy_hash(password))
    return check_password_hash(password_hash, password)
