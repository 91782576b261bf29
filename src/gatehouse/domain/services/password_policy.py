"""Password policy: temporary passwords, strength rules and hashing.

Strength rules:
- Minimum length
- Uppercase letter requirement
- Lowercase letter requirement
- Digit requirement
- Special character requirement
"""

import re
import secrets
import string
from dataclasses import dataclass

from gatehouse.domain.exceptions import PasswordPolicyError
from gatehouse.infrastructure.auth.password_hasher import hash_password, verify_password


@dataclass(frozen=True)
class PasswordValidationError:
    """A single failed strength rule.

    Attributes:
        field: The field name (always 'password').
        message: Human-readable error message.
        code: Machine-readable error code.
    """

    field: str
    message: str
    code: str


class PasswordValidator:
    """Validates password strength."""

    SPECIAL_CHARS = r"!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>\/?`~"

    def __init__(
        self,
        min_length: int = 8,
        require_uppercase: bool = True,
        require_lowercase: bool = True,
        require_digit: bool = True,
        require_special: bool = True,
    ) -> None:
        self.min_length = min_length
        self.require_uppercase = require_uppercase
        self.require_lowercase = require_lowercase
        self.require_digit = require_digit
        self.require_special = require_special

    def validate(self, password: str) -> list[PasswordValidationError]:
        """Validate a password against the policy.

        Returns:
            List of validation errors. Empty list if password is valid.
        """
        checks = [
            (
                len(password) < self.min_length,
                f"Password must be at least {self.min_length} characters",
                "password_too_short",
            ),
            (
                self.require_uppercase and not re.search(r"[A-Z]", password),
                "Password must contain at least one uppercase letter",
                "password_no_uppercase",
            ),
            (
                self.require_lowercase and not re.search(r"[a-z]", password),
                "Password must contain at least one lowercase letter",
                "password_no_lowercase",
            ),
            (
                self.require_digit and not re.search(r"\d", password),
                "Password must contain at least one digit",
                "password_no_digit",
            ),
            (
                self.require_special and not re.search(f"[{self.SPECIAL_CHARS}]", password),
                "Password must contain at least one special character",
                "password_no_special",
            ),
        ]
        return [
            PasswordValidationError(field="password", message=message, code=code)
            for failed, message, code in checks
            if failed
        ]


class PasswordPolicy:
    """Generates temporary passwords and wraps the hasher.

    Temporary passwords contain at least one upper-case letter, one
    lower-case letter, one digit and one of ``!@#$%``, in random order.
    """

    SPECIAL = "!@#$%"
    ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + SPECIAL

    def __init__(self, temporary_length: int = 12, validator: PasswordValidator | None = None) -> None:
        if temporary_length < 4:
            raise ValueError("temporary_length must be at least 4")
        self.temporary_length = temporary_length
        self.validator = validator or PasswordValidator()

    def generate_temporary_password(self) -> str:
        rng = secrets.SystemRandom()
        chars = [
            rng.choice(string.ascii_uppercase),
            rng.choice(string.ascii_lowercase),
            rng.choice(string.digits),
            rng.choice(self.SPECIAL),
        ]
        chars.extend(rng.choice(self.ALPHABET) for _ in range(self.temporary_length - len(chars)))
        rng.shuffle(chars)
        return "".join(chars)

    def ensure_strong(self, password: str) -> None:
        """Raise PasswordPolicyError if ``password`` breaks any rule."""
        errors = self.validator.validate(password)
        if errors:
            raise PasswordPolicyError(
                [{"field": e.field, "message": e.message, "code": e.code} for e in errors]
            )

    def hash(self, plaintext: str) -> str:
        return hash_password(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        return verify_password(plaintext, digest)
