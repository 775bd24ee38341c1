"""SMTP delivery of password reset links."""
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = os.getenv("SMTP_PORT")
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
FROM_EMAIL = os.getenv("FROM_EMAIL") or SMTP_USER
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:8080")


def smtp_configured() -> bool:
    return all([SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS])


def mask_email(email: str) -> str:
    parts = email.split("@")
    if len(parts) != 2:
        return "***"
    return f"{parts[0][:1]}***@{parts[1]}"


def reset_link(token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/reset-password?token={token}"


def send_reset_email(to_email: str, token: str) -> None:
    """Send the reset link. Raises smtplib.SMTPException on delivery failure."""
    link = reset_link(token)

    msg = MIMEMultipart("alternative")
    msg["Subject"] = "Reset your password"
    msg["From"] = FROM_EMAIL
    msg["To"] = to_email
    msg.attach(MIMEText(
        f"Reset your password using the following link (valid for 1 hour): {link}",
        "plain",
    ))
    msg.attach(MIMEText(
        "<p>We received a request to reset the password for your account. "
        "This link expires in 1 hour.</p>"
        f'<p><a href="{link}">Reset password</a></p>'
        "<p>If you did not request a password reset, you can ignore this email.</p>",
        "html",
    ))

    port = int(SMTP_PORT)
    smtp_cls = smtplib.SMTP_SSL if port == 465 else smtplib.SMTP
    with smtp_cls(SMTP_HOST, port, timeout=10) as server:
        if port != 465:
            server.starttls()
        server.login(SMTP_USER, SMTP_PASS)
        server.send_message(msg)

    logger.info(f"Sent password reset email to: {mask_email(to_email)}")
