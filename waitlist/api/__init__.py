"""HTTP surface of the registry service."""

from __future__ import annotations

__all__ = ["server"]
