"""Top‑level package for the waitlist application.

This package keeps a durable, deduplicated registry of email subscribers
and sends them a one-time welcome message.  Individual subpackages handle
specific concerns: persisting the registry, serving the HTTP API, sending
mail, and the operator-run batch jobs.

The ``__all__`` variable enumerates the primary public modules for
convenience when using ``from waitlist import ...``.
"""

from __future__ import annotations

__all__ = [
    "app",
    "api",
    "config",
    "errors",
    "mailer",
    "registry",
    "workflows",
]

# SemVer version of the package
__version__: str = "0.1.0"
