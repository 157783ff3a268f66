"""
Mail delivery for operator notifications.
"""

import logging
import smtplib
from email.message import EmailMessage

from utils.net import split_host_port

logger = logging.getLogger(__name__)

DEFAULT_SMTP_PORT = 25


def send_mail(server: str, to: str, sender: str, subject: str, body: str, timeout: int = 30) -> None:
    """
    Send a plain-text email through an SMTP relay.

    Args:
        server: Mail server as ``host``, ``host:port`` or ``[ipv6]:port``
        to: Recipient address (comma-separated for several)
        sender: From address
        subject: Subject line
        body: Plain-text body

    Raises:
        smtplib.SMTPException: If the relay rejects the message
        OSError: If the relay cannot be reached
        ValueError: If an address or the subject contains a line break
    """
    host, port = split_host_port(server, DEFAULT_SMTP_PORT)

    message = EmailMessage()
    message["From"] = sender
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(host, port, timeout=timeout) as smtp:
        smtp.send_message(message)

    logger.info("Email sent: to=%s, server=%s", to, server)
