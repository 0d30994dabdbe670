"""Subscriber records and the in-memory registry they are collected in."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

UNKNOWN_IP = "unknown"


def normalize_email(raw: str) -> str:
    """Return the uniqueness key for ``raw``: trimmed and lowercased."""
    return raw.strip().lower()


def is_valid_email(value: Any) -> bool:
    """Syntactic check only: one ``@`` with something on both sides.

    Deliverability is not checked.  This minimal rule is the required
    contract; pydantic's ``EmailStr`` is stricter (it rejects reserved
    domains, for one) and must not replace it.
    """
    if not isinstance(value, str):
        return False
    candidate = value.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    local, sep, domain = candidate.partition("@")
    return bool(sep and local and domain and "@" not in domain)


def format_timestamp(value: dt.datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    value = value.astimezone(dt.timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = dt.datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


@dataclass(frozen=True)
class Subscriber:
    email: str
    subscribed_at: Optional[dt.datetime] = None
    ip: str = UNKNOWN_IP
    # Entry exactly as read from storage; records are never updated, so it
    # is written back unchanged.
    raw: Any = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.raw, dict):
            return dict(self.raw)
        return {
            "email": self.email,
            "subscribedAt": (
                format_timestamp(self.subscribed_at)
                if self.subscribed_at is not None
                else None
            ),
            "ip": self.ip,
        }

    def to_entry(self) -> Any:
        """Document entry for this record, including non-object legacy entries."""
        if self.raw is not None and not isinstance(self.raw, dict):
            return self.raw
        return self.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subscriber":
        # Records are taken as stored; consumers re-validate what they use.
        email = data.get("email")
        ip = data.get("ip")
        return cls(
            email=email if isinstance(email, str) else "",
            subscribed_at=parse_timestamp(data.get("subscribedAt")),
            ip=ip if isinstance(ip, str) and ip else UNKNOWN_IP,
            raw=dict(data),
        )

    @classmethod
    def from_entry(cls, entry: Any) -> "Subscriber":
        if isinstance(entry, dict):
            return cls.from_dict(entry)
        return cls(email="", raw=entry)


@dataclass
class Registry:
    """Insertion-ordered collection of subscribers keyed by normalized email."""

    subscribers: List[Subscriber] = field(default_factory=list)
    # Top-level document keys other than "subscribers", kept on rewrite.
    extra: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.subscribers)

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(self.subscribers)

    def __contains__(self, email: object) -> bool:
        if not isinstance(email, str):
            return False
        key = normalize_email(email)
        return any(normalize_email(s.email) == key for s in self.subscribers)

    def append(self, subscriber: Subscriber) -> None:
        if subscriber.email in self:
            raise ValueError(f"duplicate subscriber: {subscriber.email}")
        self.subscribers.append(subscriber)

    def distinct_emails(self) -> List[str]:
        """Normalized, valid addresses in first-seen order."""
        seen: Dict[str, None] = {}
        for subscriber in self.subscribers:
            if not is_valid_email(subscriber.email):
                continue
            seen.setdefault(normalize_email(subscriber.email), None)
        return list(seen)

    def to_document(self) -> Dict[str, Any]:
        document = dict(self.extra)
        document["subscribers"] = [s.to_entry() for s in self.subscribers]
        return document

    @classmethod
    def from_document(cls, document: Any) -> "Registry":
        """Build a registry from a parsed document.

        Raises:
            ValueError: If ``document`` is not a mapping or its
                ``subscribers`` entry is not a list.
        """
        if not isinstance(document, dict):
            raise ValueError("registry document must be a JSON object")
        entries = document.get("subscribers") or []
        if not isinstance(entries, list):
            raise ValueError("'subscribers' must be a list")
        extra = {k: v for k, v in document.items() if k != "subscribers"}
        return cls([Subscriber.from_entry(e) for e in entries], extra)


__all__ = [
    "UNKNOWN_IP",
    "Registry",
    "Subscriber",
    "format_timestamp",
    "is_valid_email",
    "normalize_email",
    "parse_timestamp",
]
