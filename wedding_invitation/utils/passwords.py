"""
Guestbook password hashing.

Stored format is "<salt-hex>:<pbkdf2-hex>" (PBKDF2-HMAC-SHA512, 10000
iterations, 64-byte key, 16-byte salt). Values without the ":" separator are
legacy plaintext passwords.
"""
import hashlib
import hmac
import secrets

PBKDF2_ALGORITHM = "sha512"
PBKDF2_ITERATIONS = 10000
PBKDF2_KEY_LENGTH = 64
SALT_BYTES = 16
SEPARATOR = ":"


def _derive(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        PBKDF2_ALGORITHM,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
        dklen=PBKDF2_KEY_LENGTH,
    ).hex()


def hash_password(password: str) -> str:
    salt = secrets.token_hex(SALT_BYTES)
    return f"{salt}{SEPARATOR}{_derive(password, salt)}"


def is_hashed(stored: str) -> bool:
    return SEPARATOR in stored


def verify_hashed_password(password: str, stored: str) -> bool:
    parts = stored.split(SEPARATOR)
    if len(parts) != 2:
        return False
    salt, expected = parts
    return hmac.compare_digest(_derive(password, salt), expected)


def check_password(password: str, stored: str) -> tuple[bool, bool]:
    """
    Verify a guestbook password against its stored form.

    Returns:
        (matches, needs_rehash). needs_rehash is True only for a successful
        match against a legacy plaintext value.
    """
    if not password or not stored:
        return False, False

    if is_hashed(stored):
        return verify_hashed_password(password, stored), False

    matches = hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))
    return matches, matches
