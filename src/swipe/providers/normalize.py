"""Normalization boundary: Gmail metadata payloads -> NormalizedItem.

Works on the JSON returned by ``users.messages.get(format="metadata")``
restricted to ``METADATA_HEADERS``. Only headers and labels are read; the
body is never requested.

Usage:
    from swipe.providers.normalize import normalize_gmail_message

    item = normalize_gmail_message(raw_message)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parseaddr
from typing import Any

import regex

from swipe.classifier.patterns import REGEX_TIMEOUT
from swipe.core.logging import get_logger
from swipe.models import ItemCategory, NormalizedItem, UnsubscribeDescriptor

logger = get_logger(__name__)

# Headers to request with format=metadata
METADATA_HEADERS = (
    "From",
    "Subject",
    "Date",
    "List-Unsubscribe",
    "List-Unsubscribe-Post",
    "Precedence",
    "Return-Path",
    "X-Mailer",
    "X-Campaign-Id",
    "X-Newsletter",
    "X-List",
    "X-SG-EID",
    "X-Mailgun-Sid",
    "X-MC-User",
)

# Headers kept on the item for classification (lowercase)
DETECTION_HEADERS = frozenset(
    {
        "precedence",
        "return-path",
        "x-mailer",
        "x-campaign-id",
        "x-newsletter",
        "x-list",
        "x-sg-eid",
        "x-mailgun-sid",
        "x-mc-user",
        "list-unsubscribe-post",
    }
)

# Label -> coarse category, first match wins
LABEL_CATEGORIES: tuple[tuple[str, ItemCategory], ...] = (
    ("CATEGORY_PROMOTIONS", "promo"),
    ("CATEGORY_SOCIAL", "social"),
    ("CATEGORY_UPDATES", "transactional"),
    ("CATEGORY_PERSONAL", "personal"),
)

UNSUBSCRIBE_HTTP_PATTERN = regex.compile(r"<(https?://[^>]+)>", regex.IGNORECASE)
UNSUBSCRIBE_MAILTO_PATTERN = regex.compile(r"<mailto:([^>]+)>", regex.IGNORECASE)


def _first_group(pattern: regex.Pattern[str], text: str) -> str | None:
    try:
        match = pattern.search(text, timeout=REGEX_TIMEOUT)
    except TimeoutError:
        logger.warning("unsubscribe_header_parse_timeout", length=len(text))
        return None
    return match.group(1).strip() if match else None


def parse_list_unsubscribe(header: str | None) -> UnsubscribeDescriptor:
    """Extract the http(s) and mailto targets of a List-Unsubscribe header."""
    if not header:
        return UnsubscribeDescriptor()
    return UnsubscribeDescriptor(
        http=_first_group(UNSUBSCRIBE_HTTP_PATTERN, header),
        mailto=_first_group(UNSUBSCRIBE_MAILTO_PATTERN, header),
    )


def category_from_labels(labels: frozenset[str]) -> ItemCategory:
    for label, category in LABEL_CATEGORIES:
        if label in labels:
            return category
    return "unknown"


def _headers_by_name(payload: Mapping[str, Any]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for header in payload.get("headers") or ():
        if not isinstance(header, Mapping):
            continue
        name, value = header.get("name"), header.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # First occurrence wins, as for Return-Path added by each hop
            headers.setdefault(name.lower(), value)
    return headers


def normalize_gmail_message(raw: Mapping[str, Any]) -> NormalizedItem:
    """Convert one Gmail metadata message into a NormalizedItem.

    Args:
        raw: Message resource from the Gmail API (format=metadata)

    Returns:
        The normalized item
    """
    headers = _headers_by_name(raw.get("payload") or {})

    name, address = parseaddr(headers.get("from", ""))
    sender = address.strip().lower()
    sender_domain = sender.rpartition("@")[2] if "@" in sender else ""

    labels = frozenset(raw.get("labelIds") or ())

    try:
        received_at = datetime.fromtimestamp(int(raw.get("internalDate") or 0) / 1000, tz=UTC)
    except (TypeError, ValueError):
        received_at = datetime.fromtimestamp(0, tz=UTC)

    return NormalizedItem(
        id=str(raw["id"]),
        provider_id=str(raw["id"]),
        sender=sender,
        sender_name=name.strip() or None,
        sender_domain=sender_domain,
        subject=headers.get("subject") or "(no subject)",
        received_at=received_at,
        unsubscribe=parse_list_unsubscribe(headers.get("list-unsubscribe")),
        category=category_from_labels(labels),
        labels=labels,
        headers={k: v for k, v in headers.items() if k in DETECTION_HEADERS},
        provider="gmail",
        preview=str(raw.get("snippet") or ""),
        is_read="UNREAD" not in labels,
    )
