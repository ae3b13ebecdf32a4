from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import Settings, settings as default_settings

SUBJECTS = {
    "restarted": "RESTARTED",
    "failed": "RESTART FAILED",
    "dry_run": "WOULD RESTART",
}


def send_email(subject: str, body: str, settings: Settings = default_settings) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - NK_ENABLE_EMAIL=true
      - NK_SMTP_HOST / NK_SMTP_PORT
      - NK_SMTP_USER / NK_SMTP_PASSWORD
      - NK_EMAIL_FROM / NK_EMAIL_TO
    """
    if not settings.enable_email:
        return False
    if not all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    ):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = settings.email_from
        msg["To"] = settings.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError):
        return False


def notify_restart(service: str, instance: str, outcome: str, detail: str, settings: Settings = default_settings) -> bool:
    label = SUBJECTS.get(outcome, outcome.upper())
    subject = f"{label}: {service} ({instance})"
    body = f"Service: {service}\nNode: {instance}\nOutcome: {outcome}\nDetail: {detail}"
    return send_email(subject, body, settings=settings)
