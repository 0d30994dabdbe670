"""Abstract interface for handing a message to a mail transport.

The dispatch job composes one message and submits it once; how it reaches
the recipients is up to the ``EmailSender`` implementation.  The SMTP
implementation in ``smtp_sender`` is the default.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence


class EmailSender(ABC):
    """Abstract base class for email senders.

    Implementations must provide a ``send_email`` method that delivers a
    single message to every address in ``to`` and ``bcc`` and returns the
    transport's message identifier.  Addresses in ``bcc`` must not be
    disclosed to other recipients.
    """

    @abstractmethod
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
        """Send a single email message.

        Args:
            sender: The ``From`` address.
            subject: The email subject line.
            html: The HTML content of the message.
            text: Optional plain‑text version.
            to: Visible recipients.
            bcc: Blind recipients.

        Returns:
            The message identifier assigned to the message.

        Raises:
            DispatchFailed: If the transport did not accept the message.
        """
        raise NotImplementedError


__all__ = ["EmailSender"]
