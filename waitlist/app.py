"""Entry point for the registry API server.

When executed with ``python -m waitlist.app`` (or the ``waitlist-api``
console script) this module configures logging, builds the registry store
selected by the environment and serves the API with uvicorn.
"""

from __future__ import annotations

import logging

import uvicorn

from waitlist.api.server import create_app
from waitlist.config import Settings, build_store, configure_logging
from waitlist.errors import ConfigurationError
from waitlist.registry.service import SubscriptionService

LOGGER = logging.getLogger(__name__)


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        configure_logging()
        LOGGER.error("%s", exc.message)
        return 1
    configure_logging(settings.log_level)

    store = build_store(settings)
    app_instance = create_app(SubscriptionService(store))

    LOGGER.info("API server running on http://%s:%d", settings.host, settings.port)
    LOGGER.info("Subscriber registry: %s (%s)", settings.subscribers_file,
                settings.backend)
    uvicorn.run(
        app_instance,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
