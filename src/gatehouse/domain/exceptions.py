"""Domain error taxonomy.

Every expected failure of the authentication and lifecycle core is one of
these exceptions. Each carries a stable ``error_type`` code and the HTTP
status the API layer renders it with. Three families are kept apart:

- credential/token failures (``InvalidCredentialsError``, ``TokenInvalidError``)
- lookups that found nothing (``AccountNotFoundError``)
- business-rule violations (``BusinessRuleError`` and subclasses)

Anything that is not a ``GatehouseError`` is treated as an internal error.
"""


class GatehouseError(Exception):
    """Base class for expected, client-facing errors."""

    status_code: int = 400
    error_type: str = "error"
    title: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.title
        super().__init__(self.message)

    def to_dict(self) -> dict[str, object]:
        return {
            "error": self.title,
            "error_type": self.error_type,
            "message": self.message,
        }


class InvalidCredentialsError(GatehouseError):
    """Unknown identifier or wrong password. Never says which."""

    status_code = 401
    error_type = "invalid_credentials"
    title = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Invalid credentials")


class TokenInvalidError(GatehouseError):
    """Malformed, expired, wrong-kind or badly signed token."""

    status_code = 401
    error_type = "token_invalid"
    title = "Invalid token"


class AccountNotFoundError(GatehouseError):
    """No account matches the requested identifier."""

    status_code = 404
    error_type = "account_not_found"
    title = "Not found"

    def __init__(self, account_ref: object | None = None) -> None:
        self.account_ref = account_ref
        message = "Account not found" if account_ref is None else f"Account not found: {account_ref}"
        super().__init__(message)


class BusinessRuleError(GatehouseError):
    """A domain rule rejected the requested operation."""

    status_code = 400
    error_type = "business_rule_violation"
    title = "Business rule violation"


class DuplicateIdentityError(BusinessRuleError):
    """An identifier that must be unique is already taken."""

    status_code = 409
    error_type = "duplicate_identity"
    title = "Conflict"

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"An account with this {field} already exists")

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class InvalidStateError(BusinessRuleError):
    """The account is in the wrong lifecycle state for the transition."""

    status_code = 409
    error_type = "invalid_state"
    title = "Invalid account state"


class AccountNotActivatedError(InvalidStateError):
    status_code = 403
    error_type = "account_not_activated"
    title = "Account not activated"


class AccountDisabledError(InvalidStateError):
    status_code = 403
    error_type = "account_disabled"
    title = "Account disabled"


class AccountLockedError(InvalidStateError):
    status_code = 403
    error_type = "account_locked"
    title = "Account locked"


class TokenReplayError(BusinessRuleError):
    """Presented activation token is not the one currently stored."""

    status_code = 409
    error_type = "token_replay"
    title = "Token no longer valid"


class PasswordMismatchError(BusinessRuleError):
    """Password and confirmation differ, or the current password is wrong."""

    error_type = "password_mismatch"
    title = "Password mismatch"


class PasswordPolicyError(BusinessRuleError):
    """A chosen password does not satisfy the strength policy."""

    error_type = "password_policy"
    title = "Weak password"

    def __init__(self, details: list[dict[str, str]]) -> None:
        self.details = details
        super().__init__("Password does not meet the strength requirements")

    def to_dict(self) -> dict[str, object]:
        data = super().to_dict()
        data["details"] = self.details
        return data
