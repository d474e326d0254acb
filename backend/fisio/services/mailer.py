from __future__ import annotations
import os
import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from urllib.parse import urlencode

from fisio.config import PASSWORD_RESET_URL

logger = logging.getLogger(__name__)


def password_reset_link(token: str) -> str:
    return f"{PASSWORD_RESET_URL}?{urlencode({'token': token})}"


def _send(to: str, subject: str, html_content: str) -> None:
    host = os.getenv("SMTP_HOST")
    port = int(os.getenv("SMTP_PORT", "587"))
    user = os.getenv("SMTP_USER")
    sender = os.getenv("SMTP_FROM") or user

    msg = MIMEText(html_content, "html")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to

    with smtplib.SMTP(host, port, timeout=15) as server:
        server.starttls()
        if user:
            server.login(user, os.getenv("SMTP_PASSWORD", ""))
        server.send_message(msg)


async def send_password_reset_email(email: str, link: str) -> bool:
    """
    재설정 링크를 메일로 보낸다. SMTP_HOST 가 없으면 보내지 않고 False.
    발송 실패는 로그만 남긴다 (요청 응답으로 이메일 존재 여부가 드러나면 안 됨).
    """
    if not os.getenv("SMTP_HOST"):
        logger.warning("SMTP_HOST is not set; password reset email to %s not sent.", email)
        return False

    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; padding: 20px;">
        <h2>Restablece tu contraseña</h2>
        <p>Para crear o cambiar tu contraseña, abre el siguiente enlace:</p>
        <p><a href="{link}">{link}</a></p>
        <p style="font-size: 12px; color: #888;">El enlace vence en 30 minutos y solo puede usarse una vez.</p>
      </body>
    </html>
    """
    try:
        await asyncio.to_thread(_send, email, "Restablecer contraseña - Fisio", html_content)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send password reset email to %s: %s", email, e)
        return False
    logger.info("Password reset email sent to %s", email)
    return True
