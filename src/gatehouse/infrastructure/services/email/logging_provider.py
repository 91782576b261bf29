"""Email provider that only logs, used when no SMTP server is configured.

It reports every message as undelivered so the notification sender's
non-production fallback logs the activation link and temporary password.
"""

from gatehouse.core.logging import get_logger
from gatehouse.infrastructure.services.email.email_provider import EmailProvider

logger = get_logger(__name__)


class LoggingEmailProvider(EmailProvider):
    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_email: str,
        from_name: str,
        reply_to: str | None = None,
    ) -> bool:
        logger.info("Email not delivered (no SMTP configured)", to=to, subject=subject)
        return False
