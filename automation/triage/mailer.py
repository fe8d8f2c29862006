from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from automation.triage.config import DigestSettings

logger = logging.getLogger("triage-bot")


class Mailer:
    def __init__(self, settings: DigestSettings, timeout: float = 30) -> None:
        self.settings = settings
        self.timeout = timeout

    def _message(self, to: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.from_address
        msg["To"] = to
        msg["Subject"] = self.settings.subject
        msg.set_content("This digest is best viewed as HTML.")
        msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, html: str) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=self.timeout) as smtp:
            smtp.send_message(self._message(to, html))

    def deliver(self, recipients: list[str], html: str) -> list[str]:
        """Send ``html`` to each recipient; return the addresses that failed."""
        failed: list[str] = []
        for addr in recipients:
            try:
                self.send(addr, html)
            except (OSError, smtplib.SMTPException) as exc:
                logger.warning("failed to mail digest to=%s err=%s", addr, exc)
                failed.append(addr)
            else:
                logger.info("mailed digest to=%s", addr)
        return failed
