import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from gatehouse.domain.entities import AccountState, RoleName
from gatehouse.domain.exceptions import (
    AccountNotFoundError,
    BusinessRuleError,
    DuplicateIdentityError,
    InvalidStateError,
    PasswordMismatchError,
    PasswordPolicyError,
    TokenInvalidError,
    TokenReplayError,
)
from gatehouse.domain.services import AccountLifecycle
from gatehouse.domain.services.account_lifecycle import conflicting_field
from gatehouse.infrastructure.auth.token_types import TokenKind
from gatehouse.infrastructure.persistence.models import AccountModel
from gatehouse.infrastructure.persistence.repositories import AccountRepository, RoleRepository
from tests.conftest import ACCOUNT_PASSWORD, new_account


async def _all_accounts(db_session) -> list[AccountModel]:
    result = await db_session.execute(
        select(AccountModel).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _assert_pending_never_enabled(db_session) -> None:
    for account in await _all_accounts(db_session):
        assert account.status.is_consistent, account


def _subjects(email_provider) -> list[str]:
    return [m["subject"] for m in email_provider.sent]


class TestRegistration:
    @pytest.mark.asyncio
    async def test_self_registration_waits_for_approval(
        self, lifecycle, notification_sender, email_provider
    ):
        account = await lifecycle.register(new_account())
        await notification_sender.drain()

        assert account.state is AccountState.PENDING_REGISTRATION
        assert account.registration_pending
        assert not account.enabled
        assert account.activation_token is None
        assert account.role_names == [RoleName.EMPLOYEE.value]
        assert account.employee_code.startswith("DEEN")
        assert email_provider.sent == []

    @pytest.mark.asyncio
    async def test_email_is_stored_lower_case(self, lifecycle):
        account = await lifecycle.register(new_account("Ada.Lovelace@Example.COM"))

        assert account.email == "ada.lovelace@example.com"
        assert account.login_identifier == "ada.lovelace@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_ignores_case(self, lifecycle):
        await lifecycle.register(new_account("ada@example.com"))

        with pytest.raises(DuplicateIdentityError) as exc_info:
            await lifecycle.register(new_account("ADA@example.com"))

        assert exc_info.value.to_dict()["field"] == "email"

    @pytest.mark.asyncio
    async def test_duplicate_national_id(self, lifecycle):
        await lifecycle.register(new_account("a@example.com", national_id="NID-1"))

        with pytest.raises(DuplicateIdentityError) as exc_info:
            await lifecycle.register(new_account("b@example.com", national_id="NID-1"))

        assert exc_info.value.to_dict()["field"] == "national_id"

    @pytest.mark.asyncio
    async def test_national_id_race_names_the_conflicting_column(self, lifecycle, monkeypatch):
        await lifecycle.register(new_account("a@example.com", national_id="NID-1"))
        # Both registrations pass the pre-check; the unique index decides.
        monkeypatch.setattr(
            lifecycle.account_repo, "national_id_exists", AsyncMock(return_value=False)
        )

        with pytest.raises(DuplicateIdentityError) as exc_info:
            await lifecycle.register(new_account("b@example.com", national_id="NID-1"))

        assert exc_info.value.field == "national_id"

    @pytest.mark.parametrize(
        ("message", "field"),
        [
            ("UNIQUE constraint failed: accounts.employee_code", "employee_code"),
            ('duplicate key value violates unique constraint "accounts_email_key"', "email"),
            ("constraint violated", "identity"),
        ],
    )
    def test_conflicting_field(self, message, field):
        error = IntegrityError("INSERT INTO accounts ...", {}, Exception(message))

        assert conflicting_field(error) == field

    @pytest.mark.asyncio
    async def test_weak_chosen_password_is_refused(self, lifecycle, db_session):
        with pytest.raises(PasswordPolicyError):
            await lifecycle.register(new_account(password="weak"))

        assert await _all_accounts(db_session) == []

    @pytest.mark.asyncio
    async def test_public_registration_can_be_turned_off(
        self, db_session, token_codec, notification_sender, transition_locks, settings
    ):
        closed = AccountLifecycle(
            session=db_session,
            account_repo=AccountRepository(db_session),
            role_repo=RoleRepository(db_session),
            token_codec=token_codec,
            notifier=notification_sender,
            locks=transition_locks,
            settings=settings.model_copy(update={"registration_flow": "admin_provisioned"}),
        )

        with pytest.raises(InvalidStateError):
            await closed.register(new_account())


class TestProvisioning:
    @pytest.mark.asyncio
    async def test_provision_sends_welcome_with_temporary_password(
        self, lifecycle, notification_sender, email_provider, db_session
    ):
        created = await lifecycle.provision(
            new_account("grace@example.com", roles=[RoleName.PROJECT_MANAGER])
        )
        await notification_sender.drain()

        account = await AccountRepository(db_session).get_by_id_fresh(created.account_id)
        assert account.state is AccountState.PENDING_ACTIVATION
        assert account.activation_token is not None
        assert account.role_names == [RoleName.PROJECT_MANAGER.value]

        (message,) = email_provider.to("grace@example.com")
        assert message["subject"].startswith("Welcome Ada")
        assert created.temporary_password in message["text_body"]
        assert account.activation_token in message["text_body"]

    @pytest.mark.asyncio
    async def test_reset_temporary_password_replaces_token(
        self, lifecycle, notification_sender, email_provider, frozen_clock
    ):
        created = await lifecycle.provision(new_account("grace@example.com"))
        account = await lifecycle.account_repo.get_by_id_fresh(created.account_id)
        old_token = account.activation_token

        frozen_clock.advance(seconds=1)
        reset = await lifecycle.reset_temporary_password(created.account_id)
        await notification_sender.drain()

        assert reset.temporary_password != created.temporary_password
        account = await lifecycle.account_repo.get_by_id_fresh(created.account_id)
        assert account.activation_token != old_token
        assert lifecycle.password_policy.verify(reset.temporary_password, account.password_hash)
        assert _subjects(email_provider)[-1] == "Your temporary password was reset"

    @pytest.mark.asyncio
    async def test_reset_temporary_password_after_activation_is_refused(
        self, lifecycle, activated_account
    ):
        with pytest.raises(InvalidStateError):
            await lifecycle.reset_temporary_password(activated_account.id)


class TestApproval:
    @pytest.mark.asyncio
    async def test_approve_issues_token_and_sends_one_email(
        self, lifecycle, notification_sender, email_provider, token_codec
    ):
        account = await lifecycle.register(new_account())

        approved = await lifecycle.approve(account.id)
        await notification_sender.drain()

        assert not approved.registration_pending
        assert not approved.enabled
        assert approved.state is AccountState.PENDING_ACTIVATION
        assert token_codec.is_kind(approved.activation_token, TokenKind.ACTIVATION)
        assert _subjects(email_provider) == ["Your registration was approved"]
        assert approved.activation_token in email_provider.sent[0]["text_body"]

    @pytest.mark.asyncio
    async def test_second_approval_is_refused(
        self, lifecycle, notification_sender, email_provider
    ):
        account = await lifecycle.register(new_account())
        await lifecycle.approve(account.id)

        with pytest.raises(InvalidStateError):
            await lifecycle.approve(account.id)
        await notification_sender.drain()

        assert len(email_provider.sent) == 1

    @pytest.mark.asyncio
    async def test_concurrent_approvals_succeed_once(
        self, lifecycle, notification_sender, email_provider, db_session
    ):
        account = await lifecycle.register(new_account())

        results = await asyncio.gather(
            lifecycle.approve(account.id),
            lifecycle.approve(account.id),
            return_exceptions=True,
        )
        await notification_sender.drain()

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidStateError)
        assert len(email_provider.sent) == 1
        await _assert_pending_never_enabled(db_session)

    @pytest.mark.asyncio
    async def test_approve_unknown_account(self, lifecycle):
        with pytest.raises(AccountNotFoundError):
            await lifecycle.approve(9999)

    @pytest.mark.asyncio
    async def test_reject_deletes_and_frees_the_email(self, lifecycle, db_session):
        account = await lifecycle.register(new_account())

        await lifecycle.reject(account.id)

        assert await _all_accounts(db_session) == []
        again = await lifecycle.register(new_account())
        assert again.state is AccountState.PENDING_REGISTRATION

    @pytest.mark.asyncio
    async def test_reject_after_approval_is_refused(self, lifecycle):
        account = await lifecycle.register(new_account())
        await lifecycle.approve(account.id)

        with pytest.raises(InvalidStateError):
            await lifecycle.reject(account.id)


class TestActivation:
    @pytest.mark.asyncio
    async def test_activation_enables_and_logs_in(self, lifecycle, token_codec, db_session):
        account = await lifecycle.register(new_account())
        account = await lifecycle.approve(account.id)

        result = await lifecycle.activate(
            account.activation_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
        )

        activated = result.account
        assert activated.state is AccountState.ACTIVE
        assert activated.enabled and activated.active
        assert activated.username == activated.employee_code
        assert activated.activation_token is None
        assert activated.activation_token_expiry is None
        assert activated.last_login is not None
        assert lifecycle.password_policy.verify(ACCOUNT_PASSWORD, activated.password_hash)

        claims = token_codec.require(result.access_token, TokenKind.ACCESS)
        assert claims.subject == activated.email
        assert claims.account_id == activated.id
        assert result.expires_in == 3600
        await _assert_pending_never_enabled(db_session)

    @pytest.mark.asyncio
    async def test_activation_with_chosen_username(self, lifecycle):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)

        result = await lifecycle.activate(
            account.activation_token, "ada", ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
        )

        assert result.account.username == "ada"

    @pytest.mark.asyncio
    async def test_username_taken_by_another_account(self, lifecycle, activated_account):
        other = await lifecycle.register(new_account("grace@example.com"))
        other = await lifecycle.approve(other.id)

        with pytest.raises(DuplicateIdentityError) as exc_info:
            await lifecycle.activate(
                other.activation_token,
                activated_account.employee_code,
                ACCOUNT_PASSWORD,
                ACCOUNT_PASSWORD,
            )

        assert exc_info.value.to_dict()["field"] == "username"

    @pytest.mark.asyncio
    async def test_password_mismatch_changes_nothing(self, lifecycle):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)
        token = account.activation_token
        password_hash = account.password_hash

        with pytest.raises(PasswordMismatchError):
            await lifecycle.activate(token, None, ACCOUNT_PASSWORD, "Different!Passw0rd")

        stored = await lifecycle.account_repo.get_by_id_fresh(account.id)
        assert not stored.enabled
        assert stored.activation_token == token
        assert stored.password_hash == password_hash

    @pytest.mark.asyncio
    async def test_weak_password_is_refused(self, lifecycle):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)

        with pytest.raises(PasswordPolicyError):
            await lifecycle.activate(account.activation_token, None, "weak", "weak")

    @pytest.mark.asyncio
    async def test_token_cannot_be_used_twice(self, lifecycle):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)
        token = account.activation_token
        await lifecycle.activate(token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)

        with pytest.raises(InvalidStateError):
            await lifecycle.activate(token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)

    @pytest.mark.asyncio
    async def test_superseded_token_is_a_replay(self, lifecycle, frozen_clock):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)
        old_token = account.activation_token

        frozen_clock.advance(seconds=1)
        await lifecycle.resend_activation(account.email)

        with pytest.raises(TokenReplayError):
            await lifecycle.activate(old_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)

    @pytest.mark.asyncio
    async def test_expired_token_is_refused(self, lifecycle, frozen_clock):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)

        frozen_clock.advance(days=8)

        with pytest.raises(TokenInvalidError):
            await lifecycle.activate(
                account.activation_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
            )

    @pytest.mark.asyncio
    async def test_stored_expiry_is_checked_with_a_live_token(
        self, lifecycle, db_session, token_codec, frozen_clock
    ):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)
        token = account.activation_token
        account.activation_token_expiry = frozen_clock() - timedelta(minutes=1)
        await db_session.commit()

        assert token_codec.verify(token).is_valid
        assert await lifecycle.validate_activation_token(token) is None
        with pytest.raises(TokenInvalidError):
            await lifecycle.activate(token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)

        stored = await lifecycle.account_repo.get_by_id_fresh(account.id)
        assert not stored.enabled
        assert stored.activation_token == token

    @pytest.mark.asyncio
    async def test_access_token_cannot_activate(self, lifecycle, token_codec):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)
        access_token = token_codec.issue_access_token(account.email, account.id, [])

        with pytest.raises(TokenInvalidError):
            await lifecycle.activate(access_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)

    @pytest.mark.asyncio
    async def test_pending_registration_cannot_activate(self, lifecycle, db_session):
        account = await lifecycle.register(new_account())
        # A token slipped to an unapproved account must still not enable it.
        lifecycle._issue_activation(account)
        await db_session.commit()

        with pytest.raises(InvalidStateError):
            await lifecycle.activate(
                account.activation_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
            )

        stored = await lifecycle.account_repo.get_by_id_fresh(account.id)
        assert stored.registration_pending
        assert not stored.enabled

    @pytest.mark.asyncio
    async def test_validate_activation_token(self, lifecycle):
        account = await lifecycle.approve((await lifecycle.register(new_account())).id)

        preview = await lifecycle.validate_activation_token(account.activation_token)

        assert preview.account_id == account.id
        assert preview.employee_code == account.employee_code
        assert await lifecycle.validate_activation_token("garbage") is None

        await lifecycle.activate(account.activation_token, None, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD)
        assert await lifecycle.validate_activation_token(account.activation_token) is None


class TestResendActivation:
    @pytest.mark.asyncio
    async def test_resend_sends_reminder(self, lifecycle, notification_sender, email_provider):
        await lifecycle.approve((await lifecycle.register(new_account())).id)

        await lifecycle.resend_activation("ADA@example.com")
        await notification_sender.drain()

        assert _subjects(email_provider) == [
            "Your registration was approved",
            "Your new activation link",
        ]

    @pytest.mark.asyncio
    async def test_resend_for_pending_registration_is_refused(self, lifecycle):
        await lifecycle.register(new_account())

        with pytest.raises(InvalidStateError):
            await lifecycle.resend_activation("ada@example.com")

    @pytest.mark.asyncio
    async def test_resend_for_active_account_is_refused(self, lifecycle, activated_account):
        with pytest.raises(InvalidStateError):
            await lifecycle.resend_activation(activated_account.email)

    @pytest.mark.asyncio
    async def test_resend_for_unknown_email(self, lifecycle):
        with pytest.raises(AccountNotFoundError):
            await lifecycle.resend_activation("nobody@example.com")


class TestAdministration:
    @pytest.mark.asyncio
    async def test_disable_and_enable(
        self, lifecycle, activated_account, notification_sender, email_provider
    ):
        disabled = await lifecycle.disable(activated_account.id)
        await notification_sender.drain()

        assert disabled.state is AccountState.DISABLED
        assert _subjects(email_provider)[-1] == "Your account was disabled"
        with pytest.raises(InvalidStateError):
            await lifecycle.disable(activated_account.id)

        enabled = await lifecycle.enable(activated_account.id)
        assert enabled.state is AccountState.ACTIVE
        with pytest.raises(InvalidStateError):
            await lifecycle.enable(activated_account.id)

    @pytest.mark.asyncio
    async def test_enable_is_not_a_shortcut_to_activation(self, lifecycle, db_session):
        account = await lifecycle.register(new_account())

        with pytest.raises(InvalidStateError):
            await lifecycle.enable(account.id)
        with pytest.raises(InvalidStateError):
            await lifecycle.disable(account.id)
        await _assert_pending_never_enabled(db_session)

    @pytest.mark.asyncio
    async def test_lock_and_unlock(self, lifecycle, activated_account):
        locked = await lifecycle.lock(activated_account.id)
        assert locked.state is AccountState.LOCKED
        with pytest.raises(InvalidStateError):
            await lifecycle.lock(activated_account.id)

        unlocked = await lifecycle.unlock(activated_account.id)
        assert unlocked.state is AccountState.ACTIVE
        with pytest.raises(InvalidStateError):
            await lifecycle.unlock(activated_account.id)

    @pytest.mark.asyncio
    async def test_change_password(self, lifecycle, activated_account):
        await lifecycle.change_password(
            activated_account.id, ACCOUNT_PASSWORD, "An0ther!Passw0rd", "An0ther!Passw0rd"
        )

        stored = await lifecycle.account_repo.get_by_id_fresh(activated_account.id)
        assert lifecycle.password_policy.verify("An0ther!Passw0rd", stored.password_hash)

    @pytest.mark.asyncio
    async def test_change_password_checks(self, lifecycle, activated_account):
        with pytest.raises(PasswordMismatchError):
            await lifecycle.change_password(
                activated_account.id, "Wr0ng!Password", "An0ther!Passw0rd", "An0ther!Passw0rd"
            )
        with pytest.raises(BusinessRuleError):
            await lifecycle.change_password(
                activated_account.id, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD, ACCOUNT_PASSWORD
            )
        with pytest.raises(PasswordPolicyError):
            await lifecycle.change_password(activated_account.id, ACCOUNT_PASSWORD, "weak", "weak")

    @pytest.mark.asyncio
    async def test_stats(self, lifecycle, activated_account):
        await lifecycle.register(new_account("pending@example.com"))
        approved = await lifecycle.register(new_account("approved@example.com"))
        await lifecycle.approve(approved.id)
        provisioned = await lifecycle.provision(new_account("locked@example.com"))
        await lifecycle.lock(provisioned.account_id)

        stats = await lifecycle.stats()

        assert stats.pending_registration == 1
        assert stats.pending_activation == 1
        assert stats.active == 1
        assert stats.disabled == 0
        assert stats.locked == 1
        assert stats.total == 4
