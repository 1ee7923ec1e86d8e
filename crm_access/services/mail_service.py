"""SMTP mail dispatcher.

Running without SMTP configured is a normal operating mode; only callers
that actually need to send (password reset) treat it as an error.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from crm_access.core.config import settings
from crm_access.core.exceptions import MailUnavailable

logger = logging.getLogger("crm_access")


class MailService:
    """Sends transactional mail through the configured SMTP relay."""

    def __init__(self, config=None):
        self._config = config

    @property
    def config(self):
        return self._config or settings

    def is_configured(self) -> bool:
        cfg = self.config
        return bool(cfg.SMTP_HOST and cfg.SMTP_USER and cfg.SMTP_PASS)

    def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        """Send a message.

        Raises:
            MailUnavailable: SMTP is not configured or the relay refused the message.
        """
        if not self.is_configured():
            raise MailUnavailable(
                "SMTP is not configured. Set SMTP_HOST, SMTP_USER, and SMTP_PASS."
            )
        cfg = self.config
        from_email = cfg.SMTP_FROM_EMAIL or cfg.SMTP_USER

        msg = MIMEMultipart("alternative")
        msg["From"] = f'"{cfg.SMTP_FROM_NAME}" <{from_email}>'
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain", "utf-8"))
        msg.attach(MIMEText(html or body.replace("\n", "<br>"), "html", "utf-8"))

        smtp_cls = smtplib.SMTP_SSL if cfg.SMTP_SECURE else smtplib.SMTP
        try:
            with smtp_cls(cfg.SMTP_HOST, cfg.SMTP_PORT, timeout=cfg.SMTP_TIMEOUT_SECONDS) as server:
                if not cfg.SMTP_SECURE:
                    server.starttls()
                server.login(cfg.SMTP_USER, cfg.SMTP_PASS)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail delivery to %s failed: %s", to, e)
            raise MailUnavailable("Unable to send email. Check SMTP configuration.") from e


mail_service = MailService()
