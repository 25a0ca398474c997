"""Provider-agnostic item model shared by the scorer, buffer and orchestrator.

A NormalizedItem is produced by the normalization boundary
(``swipe.providers.normalize``) and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

ItemCategory = Literal["newsletter", "promo", "social", "transactional", "personal", "unknown"]

ITEM_CATEGORIES: frozenset[str] = frozenset(
    {"newsletter", "promo", "social", "transactional", "personal", "unknown"}
)


@dataclass(frozen=True, slots=True)
class UnsubscribeDescriptor:
    """Targets advertised by a List-Unsubscribe header.

    Attributes:
        http: Unsubscribe URL (http or https), if advertised
        mailto: Unsubscribe address, possibly with ?subject=/&body= parameters
    """

    http: str | None = None
    mailto: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.http or self.mailto)


@dataclass(frozen=True, slots=True)
class SenderStats:
    """Historical statistics for one sender, supplied by the persistence layer.

    Attributes:
        frequency_score: How often the sender mails (0.0-1.0)
        reputation_score: How bulk-like the sender has proven (0.0-1.0)
    """

    frequency_score: float = 0.0
    reputation_score: float = 0.5


@dataclass(frozen=True, slots=True)
class NormalizedItem:
    """One message in provider-agnostic form.

    Attributes:
        id: Stable item ID
        provider_id: Provider-specific message ID used for provider calls
        sender: Origin address
        sender_name: Origin display name (if any)
        sender_domain: Origin domain (lowercase)
        subject: Subject line
        received_at: When the message was received (UTC)
        unsubscribe: List-Unsubscribe targets
        category: Coarse provider category
        labels: Provider labels (e.g. CATEGORY_PROMOTIONS)
        headers: Detection-relevant headers keyed by lowercase header name
        provider: Provider name ("gmail", "outlook", "imap", ...)
        preview: Provider snippet (metadata only, never analysed)
        is_read: Whether the message has been read
    """

    id: str
    provider_id: str
    sender: str
    sender_domain: str
    subject: str = ""
    sender_name: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    unsubscribe: UnsubscribeDescriptor = field(default_factory=UnsubscribeDescriptor)
    category: ItemCategory = "unknown"
    labels: frozenset[str] = frozenset()
    headers: Mapping[str, str] = field(default_factory=dict)
    provider: str = "gmail"
    preview: str = ""
    is_read: bool = False

    def __post_init__(self) -> None:
        if self.sender_domain != self.sender_domain.lower():
            object.__setattr__(self, "sender_domain", self.sender_domain.lower())

    @property
    def local_part(self) -> str:
        """Part of the sender address before the '@'."""
        return self.sender.split("@", 1)[0]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NormalizedItem:
        """Build an item from a JSON-style dict (as written by ``to_dict``).

        ``sender_domain`` is derived from ``sender`` when absent and
        ``provider_id`` defaults to ``id``.
        """
        sender = str(data["sender"])
        domain = data.get("sender_domain") or sender.rpartition("@")[2]
        unsubscribe = data.get("unsubscribe") or {}

        received_raw = data.get("received_at")
        if isinstance(received_raw, datetime):
            received_at = received_raw
        elif received_raw:
            received_at = datetime.fromisoformat(str(received_raw).replace("Z", "+00:00"))
        else:
            received_at = datetime.now(UTC)

        category = data.get("category", "unknown")
        if category not in ITEM_CATEGORIES:
            category = "unknown"

        headers = data.get("headers") or {}
        return cls(
            id=str(data["id"]),
            provider_id=str(data.get("provider_id") or data["id"]),
            sender=sender,
            sender_name=data.get("sender_name"),
            sender_domain=str(domain).lower(),
            subject=str(data.get("subject") or ""),
            received_at=received_at,
            unsubscribe=UnsubscribeDescriptor(
                http=unsubscribe.get("http"),
                mailto=unsubscribe.get("mailto"),
            ),
            category=category,
            labels=frozenset(data.get("labels") or ()),
            headers=(
                {str(k).lower(): v for k, v in headers.items()}
                if isinstance(headers, Mapping)
                else {}
            ),
            provider=str(data.get("provider") or "gmail"),
            preview=str(data.get("preview") or ""),
            is_read=bool(data.get("is_read", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "sender": self.sender,
            "sender_name": self.sender_name,
            "sender_domain": self.sender_domain,
            "subject": self.subject,
            "received_at": self.received_at.isoformat(),
            "unsubscribe": {"http": self.unsubscribe.http, "mailto": self.unsubscribe.mailto},
            "category": self.category,
            "labels": sorted(self.labels),
            "headers": dict(self.headers),
            "provider": self.provider,
            "preview": self.preview,
            "is_read": self.is_read,
        }
