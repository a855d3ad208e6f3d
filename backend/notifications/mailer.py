"""
Outbound email.

Delivery goes through fastapi-mail over SMTP. When MAIL_SERVER is not
configured, messages are logged and dropped. Delivery failures are logged and
never propagate: a welcome email must not fail a registration.
"""

import logging
from html import escape
import os
from typing import Optional

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

logger = logging.getLogger(__name__)

MAIL_SERVER = os.environ.get("MAIL_SERVER")
MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@example.com")
MAIL_FROM_NAME = os.environ.get("MAIL_FROM_NAME", "Tasks API")

_client: Optional[FastMail] = None


def _get_mail_client() -> Optional[FastMail]:
    """Lazily build the FastMail client; None when email is not configured."""
    global _client
    if not MAIL_SERVER:
        return None
    if _client is None:
        config = ConnectionConfig(
            MAIL_USERNAME=MAIL_USERNAME,
            MAIL_PASSWORD=MAIL_PASSWORD,
            MAIL_FROM=MAIL_FROM,
            MAIL_PORT=MAIL_PORT,
            MAIL_SERVER=MAIL_SERVER,
            MAIL_FROM_NAME=MAIL_FROM_NAME,
            MAIL_STARTTLS=True,
            MAIL_SSL_TLS=False,
            USE_CREDENTIALS=bool(MAIL_USERNAME),
            VALIDATE_CERTS=True,
        )
        _client = FastMail(config)
    return _client


async def send_email(recipient: str, subject: str, html_body: str) -> bool:
    """Send an HTML email. Returns True when the message was handed to SMTP."""
    client = _get_mail_client()
    if client is None:
        logger.info(f"[EMAIL] MAIL_SERVER not configured, skipping '{subject}' to {recipient}")
        return False

    message = MessageSchema(
        subject=subject,
        recipients=[recipient],
        body=html_body,
        subtype=MessageType.html,
    )
    try:
        await client.send_message(message)
    except Exception as e:
        logger.error(f"[EMAIL] Failed to send '{subject}' to {recipient}: {e}")
        return False

    logger.info(f"[EMAIL] Sent '{subject}' to {recipient}")
    return True


async def send_welcome_email(recipient: str, name: str) -> bool:
    return await send_email(
        recipient,
        "Welcome to the Tasks API!",
        f"<h1>Hello, {escape(name)}!</h1><p>Your account was created successfully.</p>",
    )
