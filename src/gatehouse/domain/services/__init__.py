"""Domain services."""

from gatehouse.domain.services.account_lifecycle import (
    AccountLifecycle,
    ActivationResult,
    TransitionLocks,
    ensure_administrator,
)
from gatehouse.domain.services.authentication_service import (
    AuthenticationGateway,
    LoginResult,
)
from gatehouse.domain.services.employee_code_generator import (
    EmployeeCodeExhaustedError,
    EmployeeCodeGenerator,
)
from gatehouse.domain.services.password_policy import (
    PasswordPolicy,
    PasswordValidationError,
    PasswordValidator,
)
from gatehouse.domain.services.registration_flows import (
    AdminProvisionedFlow,
    RegistrationFlow,
    SelfRegistrationFlow,
    provisioning_flow,
    public_registration_flow,
)

__all__ = [
    "AccountLifecycle",
    "ActivationResult",
    "AdminProvisionedFlow",
    "AuthenticationGateway",
    "EmployeeCodeExhaustedError",
    "EmployeeCodeGenerator",
    "LoginResult",
    "PasswordPolicy",
    "PasswordValidationError",
    "PasswordValidator",
    "RegistrationFlow",
    "SelfRegistrationFlow",
    "TransitionLocks",
    "ensure_administrator",
    "provisioning_flow",
    "public_registration_flow",
]
