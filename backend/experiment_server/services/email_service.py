"""
Email Service
=============

Sends the scheduled experiment reports and the "server started" check mail.

Every send opens a fresh SMTP connection. Reports go out at most once an
hour, so there is nothing to gain from keeping a connection alive.
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional

from experiment_server.config import AppSettings
from experiment_server.models import ReportDocument

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """The server can't start because the mail path is broken."""


class EmailService:
    """
    SMTP transport for report mail.

    Connection details come from the settings file:
    - SMTPHost / SMTPPort: server to connect to (465 = implicit TLS)
    - SMTPUser / SMTPPassphrase: login, skipped when SMTPUser is empty
    - Sender: From address
    - To: list of recipients
    """

    SMTP_TIMEOUT = 30  # seconds
    SMTP_SSL_PORT = 465

    def __init__(self, settings: AppSettings):
        """Initialize email service from the loaded settings."""
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_passphrase = settings.smtp_passphrase
        self.from_email = settings.sender
        self.recipients = list(settings.to)

    @staticmethod
    def _now() -> str:
        return datetime.now().astimezone().isoformat(timespec="seconds")

    def _connect(self) -> smtplib.SMTP:
        """
        Open an authenticated connection to the SMTP server.

        The socket is closed if any step after connecting fails.
        """
        if self.smtp_port == self.SMTP_SSL_PORT:
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.SMTP_TIMEOUT)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.SMTP_TIMEOUT)
        try:
            if self.smtp_port != self.SMTP_SSL_PORT:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if self.smtp_user:
                server.login(self.smtp_user, self.smtp_passphrase)
        except BaseException:
            server.close()
            raise
        return server

    def send_html(self, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        """
        Send an HTML email to all recipients.

        Args:
            subject: Subject line
            html_body: HTML content
            text_body: Optional plain text alternative

        Returns:
            True if email was sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.from_email
            msg["To"] = ", ".join(self.recipients)

            if text_body:
                msg.attach(MIMEText(text_body, "plain"))
            msg.attach(MIMEText(html_body, "html"))

            with self._connect() as server:
                server.send_message(msg, from_addr=self.from_email, to_addrs=self.recipients)

            logger.info(f"Email '{subject}' sent to {', '.join(self.recipients)}")
            return True

        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            return False
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error sending '{subject}': {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to reach SMTP server {self.smtp_host}:{self.smtp_port}: {type(e).__name__}: {e}")
            return False

    def send_report(self, report: ReportDocument) -> bool:
        """Email a compiled submission report."""
        return self.send_html(
            f"Experiment Report: {self._now()}",
            report.html,
            text_body=report.text,
        )

    def send_startup_notification(self) -> bool:
        """
        Send the "server started" mail.

        Used as a health check at startup: if this fails the caller should
        refuse to start.
        """
        return self.send_html(f"Experiment Server Started: {self._now()}", "Server started")
