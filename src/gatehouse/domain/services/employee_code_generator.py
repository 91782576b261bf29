"""Employee code generator.

Codes look like ``DEEN26A1F3``: two letters of the job title, two of the
department, the two-digit year and four random hex digits. A code doubles
as the account's reserved default username.
"""

import re
import secrets
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone


class EmployeeCodeExhaustedError(Exception):
    """Raised when no unused code was found within the attempt limit."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Could not generate a unique employee code after {attempts} attempts")


class EmployeeCodeGenerator:
    """Generator for employee codes."""

    PATTERN = re.compile(r"^[A-Z]{4}\d{2}[0-9A-F]{4}$")
    MAX_ATTEMPTS = 10

    @staticmethod
    def _initials(value: str | None) -> str:
        letters = re.sub(r"[^A-Za-z]", "", value or "")
        return letters[:2].upper() if len(letters) >= 2 else "XX"

    @classmethod
    def generate(
        cls,
        job_title: str | None,
        department: str | None,
        now: datetime | None = None,
    ) -> str:
        """Build one candidate code. Uniqueness is not checked here."""
        year = (now or datetime.now(timezone.utc)).year % 100
        return (
            f"{cls._initials(job_title)}{cls._initials(department)}"
            f"{year:02d}{secrets.token_hex(2).upper()}"
        )

    @classmethod
    async def generate_unique(
        cls,
        job_title: str | None,
        department: str | None,
        exists: Callable[[str], Awaitable[bool]],
    ) -> str:
        """Generate a code that ``exists`` reports as unused.

        Raises:
            EmployeeCodeExhaustedError: After MAX_ATTEMPTS collisions.
        """
        for _ in range(cls.MAX_ATTEMPTS):
            code = cls.generate(job_title, department)
            if not await exists(code):
                return code
        raise EmployeeCodeExhaustedError(cls.MAX_ATTEMPTS)

    @classmethod
    def validate(cls, code: str) -> bool:
        return isinstance(code, str) and bool(cls.PATTERN.match(code))
