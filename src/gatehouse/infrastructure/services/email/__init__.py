"""Email providers and template rendering."""

from gatehouse.infrastructure.services.email.email_provider import EmailProvider
from gatehouse.infrastructure.services.email.logging_provider import LoggingEmailProvider
from gatehouse.infrastructure.services.email.smtp_provider import SMTPProvider, SMTPSettings
from gatehouse.infrastructure.services.email.template_renderer import TemplateRenderer

__all__ = [
    "EmailProvider",
    "LoggingEmailProvider",
    "SMTPProvider",
    "SMTPSettings",
    "TemplateRenderer",
]
