"""Token inspection routes, mounted outside production only.

Claims are read with ``TokenCodec.claim`` so that an expired or tampered
token can still be inspected.
"""

from fastapi import APIRouter

from gatehouse.core.logging import get_logger, token_fingerprint
from gatehouse.infrastructure.api.dependencies import Codec, DbSession
from gatehouse.infrastructure.api.schemas import TokenInfoResponse
from gatehouse.infrastructure.auth.token_types import KIND_CLAIM, TokenKind
from gatehouse.infrastructure.persistence.repositories import AccountRepository

logger = get_logger(__name__)

router = APIRouter()


@router.get("/token-info/{token}", response_model=TokenInfoResponse)
async def token_info(token: str, codec: Codec, session: DbSession) -> TokenInfoResponse:
    """Report a token's claims, its validity and the account it points at."""
    logger.debug("Token inspected", token_fingerprint=token_fingerprint(token))
    subject = codec.claim(token, "sub")
    account_id = codec.claim(token, "account_id")
    if not isinstance(account_id, int):
        account_id = None
    verification = codec.verify(token)
    is_access_token = codec.is_kind(token, TokenKind.ACCESS)

    account_found: bool | None = None
    valid_for_account: bool | None = None
    repo = AccountRepository(session)
    if account_id is not None:
        account = await repo.get_by_id(account_id)
    elif isinstance(subject, str):
        account = await repo.get_by_login_identifier(subject)
    else:
        account = None
    if account_id is not None or subject is not None:
        account_found = account is not None
    if account is not None:
        valid_for_account = (
            verification.is_valid
            and is_access_token
            and codec.matches_subject(token, account.login_identifier)
        )

    kind = codec.claim(token, KIND_CLAIM)
    email = codec.claim(token, "email")
    return TokenInfoResponse(
        subject=subject if isinstance(subject, str) else None,
        email=email if isinstance(email, str) else None,
        account_id=account_id,
        kind=kind if isinstance(kind, str) else None,
        is_valid=verification.is_valid,
        invalid_reason=verification.reason,
        is_access_token=is_access_token,
        remaining_lifetime_seconds=int(codec.remaining_lifetime(token).total_seconds()),
        account_found=account_found,
        valid_for_account=valid_for_account,
    )
