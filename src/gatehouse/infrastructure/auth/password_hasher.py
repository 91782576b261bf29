"""Password hashing using Argon2id.

Provides one-way hashing and constant-time verification. Plaintext
passwords and their hashes must never be logged.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

_hasher = PasswordHasher()

# Verified against when a login names an unknown account, so both failure
# paths spend the same time hashing.
DUMMY_PASSWORD_HASH = _hasher.hash("gatehouse-dummy-password")


def hash_password(password: str) -> str:
    """Hash a password using Argon2id.

    Example:
        >>> hash_password("SecureP@ss123!").startswith("$argon2id$")
        True
    """
    return _hasher.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a hash.

    Args:
        password: The plaintext password to verify.
        hashed: The stored hash.

    Returns:
        True if the password matches, False otherwise (including for a
        hash that cannot be parsed).
    """
    try:
        _hasher.verify(hashed, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def needs_rehash(hashed: str) -> bool:
    """Check if a hash was produced with outdated parameters."""
    return _hasher.check_needs_rehash(hashed)
