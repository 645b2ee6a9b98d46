import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from fastapi import Request

import config

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Password Reset OTP - ReclaimAdmin"

OTP_TEXT = """Hello,

You have requested to reset your password for your {kind} account.

Your one-time password is: {code}

This OTP will expire in {minutes} minutes.
If you did not request this password reset, please ignore this email.
"""

OTP_HTML = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
    <h1>Password Reset Request</h1>
    <p>You have requested to reset your password for your {kind} account.</p>
    <p>Please use the following OTP (One-Time Password) to verify your identity:</p>
    <h2 style="letter-spacing: 8px;">{code}</h2>
    <p><strong>This OTP will expire in {minutes} minutes.</strong></p>
    <p>If you did not request this password reset, please ignore this email.</p>
  </body>
</html>
"""


class SmtpMailer:
    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str], sender: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def send_otp(self, email: str, code: str, purpose: str = "user") -> bool:
        """Deliver a one-time code; False when the transport fails."""
        kind = "admin" if purpose == "admin" else "user"
        fields = {"kind": kind, "code": code, "minutes": config.OTP_TTL_MINUTES}
        msg = EmailMessage()
        msg["Subject"] = OTP_SUBJECT
        msg["From"] = self.sender
        msg["To"] = email
        msg.set_content(OTP_TEXT.format(**fields))
        msg.add_alternative(OTP_HTML.format(**fields), subtype="html")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Error sending OTP email to %s", email)
            return False
        logger.info("OTP email sent to %s", email)
        return True


def get_mailer(request: Request) -> SmtpMailer:
    return request.app.state.mailer
