"""Fire-and-forget notification sender.

``send`` schedules delivery on the running event loop and returns at once;
the caller's transition never waits for, or fails because of, an email.
Delivery failures are logged. Outside production the activation link and
any temporary password are logged too, so a developer can still finish the
flow without a mail server.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.logging import get_logger
from gatehouse.infrastructure.services.email import (
    EmailProvider,
    LoggingEmailProvider,
    SMTPProvider,
    SMTPSettings,
    TemplateRenderer,
)
from gatehouse.infrastructure.services.email.templates import TEMPLATES, EmailTemplate

logger = get_logger(__name__)


class NotificationSender:
    """Renders templates and hands them to an email provider in the background."""

    def __init__(
        self,
        provider: EmailProvider,
        renderer: TemplateRenderer | None = None,
        settings: Settings | None = None,
        templates: Mapping[str, EmailTemplate] | None = None,
    ) -> None:
        self.provider = provider
        self.renderer = renderer or TemplateRenderer()
        self.settings = settings or get_settings()
        self.templates = dict(templates or TEMPLATES)
        self._tasks: set[asyncio.Task[bool]] = set()

    def send(self, template_name: str, recipient: str, data: Mapping[str, Any]) -> None:
        """Schedule a notification. Never raises for delivery problems."""
        task = asyncio.get_running_loop().create_task(
            self.deliver(template_name, recipient, dict(data))
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def deliver(self, template_name: str, recipient: str, data: dict[str, Any]) -> bool:
        """Render and send one notification, recovering from any failure."""
        try:
            template = self.templates[template_name]
            subject = self.renderer.render(template.subject, data)
            html_body = self.renderer.render(template.html_body, data)
            text_body = self.renderer.render(template.text_body, data)
            sent = await self.provider.send_email(
                to=recipient,
                subject=subject,
                html_body=html_body,
                text_body=text_body,
                from_email=self.settings.mail_from_email,
                from_name=self.settings.mail_from_name,
            )
        except Exception as e:
            logger.error(
                "Notification delivery failed",
                template=template_name,
                recipient=recipient,
                error=str(e),
                exc_type=type(e).__name__,
            )
            sent = False

        if sent:
            logger.info("Notification sent", template=template_name, recipient=recipient)
        else:
            self._log_fallback(template_name, recipient, data)
        return sent

    def _log_fallback(self, template_name: str, recipient: str, data: dict[str, Any]) -> None:
        if self.settings.is_production:
            return
        logger.warning(
            "Notification fallback (non-production only)",
            template=template_name,
            recipient=recipient,
            activation_link=data.get("activation_link"),
            temporary_password=data.get("temporary_password"),
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def build_notification_sender(settings: Settings | None = None) -> NotificationSender:
    """SMTP when a host is configured, log-only otherwise."""
    settings = settings or get_settings()
    provider: EmailProvider
    if settings.smtp_host:
        provider = SMTPProvider(SMTPSettings.from_settings(settings))
    else:
        provider = LoggingEmailProvider()
    return NotificationSender(provider, settings=settings)
