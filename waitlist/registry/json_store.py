"""JSON-file registry store.

The registry lives in a single document of the form::

    {"subscribers": [{"email": ..., "subscribedAt": ..., "ip": ...}]}

Saves go through a temporary file in the same directory which is flushed,
fsynced and then moved over the target with ``os.replace``.  A reader
therefore sees either the previous or the new document, never a partial one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from waitlist.errors import StoreUnavailable
from waitlist.registry import RegistryStore
from waitlist.registry.models import Registry

LOGGER = logging.getLogger(__name__)


class JsonRegistryStore(RegistryStore):
    """JSON document implementation of the ``RegistryStore`` interface."""

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Registry:
        if not self._path.exists():
            # Initialization writes, so it shares the writers' lock.
            with self.exclusive():
                if not self._path.exists():
                    LOGGER.info("Creating empty registry at %s", self._path)
                    self.save(Registry())
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
            return Registry.from_document(document)
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError subclass.
            LOGGER.error("Failed to read registry %s: %s", self._path, exc)
            raise StoreUnavailable() from exc

    def save(self, registry: Registry) -> None:
        payload = json.dumps(registry.to_document(), indent=2)
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            LOGGER.error("Failed to write registry %s: %s", self._path, exc)
            raise StoreUnavailable() from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    LOGGER.warning("Could not remove temporary file %s", tmp_name)


__all__ = ["JsonRegistryStore"]
