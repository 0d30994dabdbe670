"""Operator-run batch jobs.

These are short-lived processes executed by hand or from a scheduler, not
from the API server.  See ``welcome_dispatch.py`` for the one-time welcome
email sent to everyone on the waitlist.
"""

from __future__ import annotations

__all__ = ["welcome_dispatch", "welcome_message"]
