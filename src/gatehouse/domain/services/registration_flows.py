"""Account creation flows.

Two ways of creating an account coexist:

- admin-provisioned: an administrator creates the account; it gets a
  temporary password and an activation token straight away and the
  welcome email goes out immediately.
- self-registration: the holder registers; the account waits for approval
  and nothing is sent until an approver acts.

The flow decides the initial status flags and what happens at creation.
Which flow serves the public registration endpoint is configured with
``GATEHOUSE_REGISTRATION_FLOW``; administrators can always provision.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from gatehouse.core.config import Settings


@dataclass(frozen=True)
class InitialStatus:
    registration_pending: bool
    enabled: bool
    active: bool


class RegistrationFlow(ABC):
    """How a new account starts its life."""

    name: str
    issues_activation_on_create: bool
    uses_temporary_password: bool
    allows_self_registration: bool

    @abstractmethod
    def initial_status(self) -> InitialStatus:
        """Status flags for a freshly created account."""


class AdminProvisionedFlow(RegistrationFlow):
    name = "admin_provisioned"
    issues_activation_on_create = True
    uses_temporary_password = True
    allows_self_registration = False

    def __init__(self, pending: bool = False) -> None:
        self.pending = pending

    def initial_status(self) -> InitialStatus:
        return InitialStatus(registration_pending=self.pending, enabled=False, active=False)


class SelfRegistrationFlow(RegistrationFlow):
    name = "self_registration"
    issues_activation_on_create = False
    uses_temporary_password = False
    allows_self_registration = True

    def __init__(self, initially_active: bool = False) -> None:
        self.initially_active = initially_active

    def initial_status(self) -> InitialStatus:
        return InitialStatus(
            registration_pending=True, enabled=False, active=self.initially_active
        )


def provisioning_flow(settings: Settings) -> AdminProvisionedFlow:
    return AdminProvisionedFlow(pending=settings.provisioned_accounts_pending)


def public_registration_flow(settings: Settings) -> RegistrationFlow:
    """Flow used by the public registration endpoint."""
    if settings.registration_flow == "admin_provisioned":
        return provisioning_flow(settings)
    return SelfRegistrationFlow(initially_active=settings.self_registered_accounts_active)
