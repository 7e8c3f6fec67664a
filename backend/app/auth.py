import hashlib
import hmac
import secrets

import bcrypt

# bcrypt only looks at the first 72 bytes of the password
BCRYPT_MAX_BYTES = 72


def _sha256_hex(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def hash_password(password: str, scheme: str = "sha256") -> str:
    """Hash a password for storage.

    The default "sha256" scheme is an unsalted digest kept for compatibility
    with existing rows; "bcrypt" produces salted hashes.
    """
    if scheme == "bcrypt":
        return bcrypt.hashpw(
            password.encode()[:BCRYPT_MAX_BYTES], bcrypt.gensalt()
        ).decode()
    if scheme == "sha256":
        return _sha256_hex(password)
    raise ValueError(f"Unknown password hash scheme: {scheme}")


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings in time independent of where they differ.

    Unequal lengths return early; that is the only data-dependent exit.
    """
    a_bytes, b_bytes = a.encode(), b.encode()
    if len(a_bytes) != len(b_bytes):
        return False
    return hmac.compare_digest(a_bytes, b_bytes)


def verify_password(plain: str, hashed: str) -> bool:
    if hashed.startswith("$2"):
        try:
            return bcrypt.checkpw(plain.encode()[:BCRYPT_MAX_BYTES], hashed.encode())
        except ValueError:
            return False
    return constant_time_equals(_sha256_hex(plain), hashed)


def generate_token() -> str:
    """Return an opaque bearer token with 256 bits of entropy, hex encoded."""
    return secrets.token_hex(32)
