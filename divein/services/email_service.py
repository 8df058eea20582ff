import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from divein.config import settings

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, html_content: str):
    if not all([settings.smtp_host, settings.smtp_username, settings.smtp_password, settings.smtp_from_email]):
        raise RuntimeError("SMTP email config missing")
    msg = MIMEMultipart()
    msg["From"] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
    msg["To"] = to_email
    msg["Subject"] = subject

    msg.attach(MIMEText(html_content, "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(msg)
    except Exception as e:
        raise RuntimeError(f"SMTP send failed: {str(e)}")
    logger.info("Email '%s' sent to %s", subject, to_email)


def password_reset_email(reset_url: str) -> str:
    return f"""
    <h2>Resetarea parolei DiveIn</h2>
    <p>Am primit o cerere de resetare a parolei pentru contul organizației tale.</p>
    <a href="{reset_url}"
       style="display:inline-block;padding:12px 18px;
              background:#2563eb;color:#ffffff;
              text-decoration:none;border-radius:6px;">
       Resetează parola
    </a>
    <p>Dacă nu ai cerut resetarea, poți ignora acest email.</p>
    """
