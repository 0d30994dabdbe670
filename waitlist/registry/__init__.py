"""Persistence interface for the subscriber registry.

This subpackage defines the ``RegistryStore`` contract along with two
concrete backends: a single JSON document replaced atomically on every save
(the default) and a SQLite database.  The subscription and dispatch logic
only talk to ``RegistryStore``, so a backend can be swapped through
configuration without changing the calling semantics.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from waitlist.registry.models import Registry, Subscriber


class RegistryStore(ABC):
    """Abstract base class for registry stores.

    A store owns the exclusive-access primitive for its registry.  Callers
    performing a read-check-append-write sequence must hold
    :meth:`exclusive` for the whole sequence; plain reads need no lock
    because implementations replace the persisted state atomically.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the single-writer section for the duration of the block."""
        with self._lock:
            yield

    @abstractmethod
    def load(self) -> Registry:
        """Return the current registry, creating an empty one on first use.

        Raises:
            StoreUnavailable: If the backing medium cannot be read or holds
                a malformed document.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, registry: Registry) -> None:
        """Replace the persisted registry atomically.

        Raises:
            StoreUnavailable: On any I/O failure.  The previously persisted
                state is left intact.
        """
        raise NotImplementedError


__all__ = ["Registry", "RegistryStore", "Subscriber"]
