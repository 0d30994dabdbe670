"""Subscribe and count operations over a ``RegistryStore``."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Optional

from waitlist.errors import (
    AlreadyExists,
    InternalError,
    InvalidInput,
    StoreUnavailable,
)
from waitlist.registry import RegistryStore
from waitlist.registry.models import (
    UNKNOWN_IP,
    Subscriber,
    is_valid_email,
    normalize_email,
)

LOGGER = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Thanks for subscribing! We'll notify you when we launch."


@dataclass(frozen=True)
class SubscriptionResult:
    success: bool
    message: str
    subscriber: Optional[Subscriber] = None


class SubscriptionService:
    """Registry operations exposed by the HTTP layer.

    One instance wraps one store for the lifetime of the process.  All
    mutations go through ``store.exclusive()`` so that two concurrent
    subscriptions for the same address cannot both pass the membership
    check.
    """

    def __init__(self, store: RegistryStore) -> None:
        self._store = store

    @property
    def store(self) -> RegistryStore:
        return self._store

    def subscribe(
        self, raw_email: Any, source_ip: Optional[str] = None
    ) -> SubscriptionResult:
        """Add ``raw_email`` to the registry.

        Args:
            raw_email: Address as submitted by the client.
            source_ip: Best-effort client address, stored for audit only.

        Returns:
            A successful :class:`SubscriptionResult`.

        Raises:
            InvalidInput: The address is not syntactically valid.
            AlreadyExists: The normalized address is already registered.
            InternalError: The store failed; nothing was written.
        """
        if not is_valid_email(raw_email):
            raise InvalidInput()
        email = normalize_email(raw_email)

        try:
            with self._store.exclusive():
                registry = self._store.load()
                if email in registry:
                    LOGGER.info("Duplicate subscription for %s", email)
                    raise AlreadyExists()
                subscriber = Subscriber(
                    email=email,
                    subscribed_at=dt.datetime.now(dt.timezone.utc),
                    ip=source_ip or UNKNOWN_IP,
                )
                registry.append(subscriber)
                self._store.save(registry)
        except StoreUnavailable as exc:
            LOGGER.exception("Subscribe failed for %s", email)
            raise InternalError() from exc

        LOGGER.info("New subscriber: %s", email)
        return SubscriptionResult(True, SUCCESS_MESSAGE, subscriber)

    def count(self) -> int:
        try:
            return len(self._store.load())
        except StoreUnavailable as exc:
            LOGGER.exception("Failed to count subscribers")
            raise InternalError() from exc


__all__ = ["SUCCESS_MESSAGE", "SubscriptionResult", "SubscriptionService"]
