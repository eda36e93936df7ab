import logging
import smtplib

from flask import current_app
from flask_mail import Message

log = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Send email using Flask-Mail configuration.
    Falls back to logging if mail is not configured.
    """
    mail = current_app.extensions.get("mail")
    if mail is None or not current_app.config.get("MAIL_SERVER"):
        log.info("[email not configured] to=%s subject=%s body=%s", to_email, subject, body[:120])
        return False

    msg = Message(
        subject=subject,
        recipients=[to_email],
        body=body,
        sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
    )

    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as e:
        log.error("Failed to send email to %s: %s", to_email, e)
        return False

    log.info("Email sent to=%s subject=%s", to_email, subject)
    return True
