"""Built-in notification templates (subject, HTML body, text body)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html_body: str
    text_body: str


_SIGNATURE_HTML = "<p>The Gatehouse team</p>"
_SIGNATURE_TEXT = "The Gatehouse team"

TEMPLATES: dict[str, EmailTemplate] = {
    "welcome": EmailTemplate(
        subject="Welcome {{ first_name }}, your account is ready to activate",
        html_body=(
            "<p>Hello {{ first_name }},</p>"
            "<p>An account was created for you. Your employee code is "
            "<strong>{{ employee_code }}</strong> and your temporary password is "
            "<strong>{{ temporary_password }}</strong>.</p>"
            '<p><a href="{{ activation_link }}">Activate your account</a> within '
            "{{ activation_days }} days to choose your own password.</p>" + _SIGNATURE_HTML
        ),
        text_body=(
            "Hello {{ first_name }},\n\n"
            "An account was created for you.\n"
            "Employee code: {{ employee_code }}\n"
            "Temporary password: {{ temporary_password }}\n\n"
            "Activate it within {{ activation_days }} days: {{ activation_link }}\n\n"
            + _SIGNATURE_TEXT
        ),
    ),
    "activation": EmailTemplate(
        subject="Your registration was approved",
        html_body=(
            "<p>Hello {{ first_name }},</p>"
            "<p>Your registration was approved. "
            '<a href="{{ activation_link }}">Activate your account</a> within '
            "{{ activation_days }} days.</p>" + _SIGNATURE_HTML
        ),
        text_body=(
            "Hello {{ first_name }},\n\n"
            "Your registration was approved. Activate your account within "
            "{{ activation_days }} days: {{ activation_link }}\n\n" + _SIGNATURE_TEXT
        ),
    ),
    "activation_reminder": EmailTemplate(
        subject="Your new activation link",
        html_body=(
            "<p>Hello {{ first_name }},</p>"
            '<p>Here is a new <a href="{{ activation_link }}">activation link</a>. '
            "Earlier links no longer work.</p>" + _SIGNATURE_HTML
        ),
        text_body=(
            "Hello {{ first_name }},\n\n"
            "Here is a new activation link: {{ activation_link }}\n"
            "Earlier links no longer work.\n\n" + _SIGNATURE_TEXT
        ),
    ),
    "temporary_password_reset": EmailTemplate(
        subject="Your temporary password was reset",
        html_body=(
            "<p>Hello {{ first_name }},</p>"
            "<p>Your new temporary password is <strong>{{ temporary_password }}</strong>.</p>"
            '<p><a href="{{ activation_link }}">Activate your account</a>.</p>' + _SIGNATURE_HTML
        ),
        text_body=(
            "Hello {{ first_name }},\n\n"
            "Your new temporary password is {{ temporary_password }}\n"
            "Activate your account: {{ activation_link }}\n\n" + _SIGNATURE_TEXT
        ),
    ),
    "account_disabled": EmailTemplate(
        subject="Your account was disabled",
        html_body=(
            "<p>Hello {{ first_name }},</p>"
            "<p>Your account ({{ employee_code }}) was disabled by an administrator.</p>"
            + _SIGNATURE_HTML
        ),
        text_body=(
            "Hello {{ first_name }},\n\n"
            "Your account ({{ employee_code }}) was disabled by an administrator.\n\n"
            + _SIGNATURE_TEXT
        ),
    ),
}
