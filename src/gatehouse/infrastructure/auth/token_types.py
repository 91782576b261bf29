"""Token kinds, claim models and the authenticated request identity."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Claim that carries the kind discriminator.
KIND_CLAIM = "type"


class TokenKind(str, Enum):
    """Purpose of a signed token. Issued lower-case."""

    ACCESS = "access"
    ACTIVATION = "activation"

    @classmethod
    def parse(cls, value: Any) -> "TokenKind | None":
        """Map a raw kind claim to a TokenKind, ignoring case.

        Older tokens spelled the activation kind ``ACCOUNT_ACTIVATION``; it
        is still accepted. Anything else, including a missing claim, maps to
        None so it matches no kind.
        """
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        if normalized == "account_activation":
            return cls.ACTIVATION
        for kind in cls:
            if kind.value == normalized:
                return kind
        return None


class TokenClaims(BaseModel):
    """Verified claims of a token."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    subject: str | None = Field(default=None, alias="sub")
    raw_kind: str | None = Field(default=None, alias=KIND_CLAIM)
    issued_at: int = Field(..., alias="iat")
    expires_at: int = Field(..., alias="exp")
    roles: list[str] = Field(default_factory=list)
    account_id: int | None = None
    email: str | None = None

    @property
    def kind(self) -> TokenKind | None:
        return TokenKind.parse(self.raw_kind)


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of ``TokenCodec.verify``.

    Verification never raises; callers branch on ``is_valid``.
    """

    is_valid: bool
    claims: TokenClaims | None = None
    reason: str | None = None

    @classmethod
    def valid(cls, claims: TokenClaims) -> "TokenVerification":
        return cls(is_valid=True, claims=claims)

    @classmethod
    def invalid(cls, reason: str) -> "TokenVerification":
        return cls(is_valid=False, reason=reason)

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass
class AuthenticatedUser:
    """Identity resolved from a valid access token for one request."""

    account_id: int
    email: str
    username: str | None
    roles: list[str] = field(default_factory=list)
    token_expires_at: int | None = None

    def has_role(self, role: str) -> bool:
        return role.upper() in {r.upper() for r in self.roles}
