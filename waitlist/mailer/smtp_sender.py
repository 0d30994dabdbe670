"""SMTP-based email sender implementation.

This module provides ``SMTPSender``, a concrete implementation of
``EmailSender`` that uses Python's ``smtplib`` to deliver a message via an
SMTP server.

Connection behaviour:

* Port 465, or ``use_ssl=True``, connects with implicit TLS
  (``SMTP_SSL``).
* Any other port connects in plain text and upgrades with STARTTLS when
  the server advertises it.
* Credentials, when given, are used to log in before sending.

Blind recipients are passed to the server as envelope recipients only; no
``Bcc`` header is written into the message.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Sequence

from waitlist.errors import DispatchFailed
from waitlist.mailer import EmailSender

LOGGER = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465
UNDISCLOSED_RECIPIENTS = "undisclosed-recipients:;"


class SMTPSender(EmailSender):
    """SMTP implementation of the ``EmailSender`` interface."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: Optional[bool] = None,
        debug: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._use_ssl = port == IMPLICIT_TLS_PORT if use_ssl is None else use_ssl
        self._debug = debug
        self._timeout = timeout

    def _build_message(
        self,
        sender: str,
        subject: str,
        html: str,
        text: Optional[str],
        to: Sequence[str],
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(to) if to else UNDISCLOSED_RECIPIENTS
        domain = sender.rpartition("@")[2] or None
        msg["Message-ID"] = make_msgid(domain=domain)
        if text:
            msg.set_content(text)
            msg.add_alternative(html, subtype="html")
        else:
            msg.set_content(html, subtype="html")
        return msg

    def send_email(
        self,
        *,
        sender: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        to: Sequence[str] = (),
        bcc: Sequence[str] = (),
    ) -> str:
        """Send one message to ``to`` and ``bcc`` and return its Message-ID."""
        envelope = list(to) + list(bcc)
        if not envelope:
            raise ValueError("at least one recipient is required")
        msg = self._build_message(sender, subject, html, text, to)

        try:
            if self._use_ssl:
                smtp_conn: smtplib.SMTP = smtplib.SMTP_SSL(
                    self._host, self._port, timeout=self._timeout
                )
            else:
                smtp_conn = smtplib.SMTP(
                    self._host, self._port, timeout=self._timeout
                )
            with smtp_conn as smtp:
                if self._debug:
                    smtp.set_debuglevel(1)
                smtp.ehlo()
                if not self._use_ssl and smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
                if self._username and self._password:
                    smtp.login(self._username, self._password)
                refused = smtp.send_message(
                    msg, from_addr=sender, to_addrs=envelope
                )
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error(
                "SMTP send via %s:%s failed: %s", self._host, self._port, exc
            )
            raise DispatchFailed(
                f"Failed to connect or send email via SMTP server at "
                f"{self._host}:{self._port}"
            ) from exc

        if refused:
            LOGGER.warning("SMTP server refused %d recipient(s): %s",
                           len(refused), ", ".join(refused))
        return str(msg["Message-ID"])


__all__ = ["SMTPSender"]
