"""Runtime configuration read from environment variables.

Environment variables used:

* ``SUBSCRIBERS_FILE`` – path of the registry; defaults to
  ``waitlist/data/subscribers.json`` (``subscribers.db`` for SQLite).
* ``REGISTRY_BACKEND`` – ``json`` (default) or ``sqlite``.
* ``HOST`` / ``PORT`` – bind address of the API server; defaults to
  ``0.0.0.0`` and ``3001``.
* ``LOG_LEVEL`` – root logging level; defaults to ``INFO``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from waitlist.errors import ConfigurationError
from waitlist.registry import RegistryStore
from waitlist.registry.json_store import JsonRegistryStore
from waitlist.registry.sqlite_store import SQLiteRegistryStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
BACKENDS = ("json", "sqlite")


def _get_data_dir() -> Path:
    # Base dir: .../waitlist
    return Path(__file__).resolve().parent / "data"


@dataclass(frozen=True)
class Settings:
    subscribers_file: Path
    backend: str = "json"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        backend = (env.get("REGISTRY_BACKEND") or "json").strip().lower()
        if backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown REGISTRY_BACKEND {backend!r}; "
                f"expected one of {', '.join(BACKENDS)}"
            )
        default_name = "subscribers.db" if backend == "sqlite" else "subscribers.json"
        path = env.get("SUBSCRIBERS_FILE") or str(_get_data_dir() / default_name)
        try:
            port = int(env.get("PORT") or "3001")
        except ValueError as exc:
            raise ConfigurationError("PORT must be an integer") from exc
        return cls(
            subscribers_file=Path(path),
            backend=backend,
            host=env.get("HOST") or "0.0.0.0",
            port=port,
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )


def build_store(settings: Settings) -> RegistryStore:
    """Return the registry store selected by ``settings.backend``."""
    if settings.backend == "sqlite":
        return SQLiteRegistryStore(settings.subscribers_file)
    return JsonRegistryStore(settings.subscribers_file)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


__all__ = ["Settings", "build_store", "configure_logging"]
