import logging
import smtplib
from email.message import EmailMessage

from bookhub.config import Settings

logger = logging.getLogger(__name__)


class Mailer:
    """Sends plain-text mail over SMTP; only logs when no SMTP host is configured."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.mail_from

    def send(self, to: str, subject: str, body: str):
        if not self.host:
            logger.info("[EMAIL] To: %s | Subject: %s", to, subject)
            return

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)
        logger.info("Sent '%s' to %s", subject, to)
