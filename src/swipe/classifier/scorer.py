"""Deterministic newsletter/promo/social classification from message metadata.

Classification pipeline (fixed order, first override wins):
1. Transactional override: sender local part or subject carries a
   transactional marker -> ``transactional`` at 0.9
2. Personal override: free-mail "first.last" sender or "First Last"
   display name -> ``personal`` at 0.8
3. Five independent signals in [0, 1]: List-Unsubscribe presence, provider
   bulk category, bulk-platform sender domain, bulk header patterns, and the
   caller's sender reputation/frequency statistics
4. Weighted sum of the signals
5. Thresholds on the sum, then a provider-category override for results
   that would otherwise stay ``unknown``

Only headers and metadata are consulted; bodies and HTML are never read, so
the HTML-metadata weight is reserved and always contributes zero.

Usage:
    from swipe.classifier.scorer import classify, classify_batch

    result = classify(item)
    results = classify_batch(items, stats_by_sender)
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from swipe.classifier.patterns import (
    FREE_MAIL_DOMAINS,
    MARKETING_PLATFORM_DOMAINS,
    PERSONAL_DISPLAY_NAME_PATTERN,
    PERSONAL_LOCAL_PART_PATTERN,
    PROMOTIONS_LABEL,
    SOCIAL_LABEL,
    TRANSACTIONAL_SENDER_PATTERN,
    TRANSACTIONAL_SUBJECT_PATTERN,
    UPDATES_LABEL,
    fullmatch,
    match_domain,
    search,
)
from swipe.core.logging import get_logger
from swipe.models import ItemCategory, NormalizedItem, SenderStats

logger = get_logger(__name__)

TRANSACTIONAL_CONFIDENCE = 0.9
PERSONAL_CONFIDENCE = 0.8

# Weighted-sum weights; html_metadata is reserved and always scores 0
WEIGHTS: Mapping[str, float] = {
    "unsubscribe": 0.35,
    "sender_reputation": 0.25,
    "provider_category": 0.20,
    "frequency": 0.10,
    "html_metadata": 0.05,
    "header_pattern": 0.05,
}

NEWSLETTER_THRESHOLD = 0.75
PROMO_THRESHOLD = 0.50
SOCIAL_THRESHOLD = 0.30

DEFAULT_REPUTATION = 0.5
DEFAULT_FREQUENCY = 0.0

# Provider category signal strengths
STRONG_CATEGORY_SCORE = 0.95
UPDATES_CATEGORY_SCORE = 0.5

# Bulk-platform sender domain signal strengths
DIRECT_PLATFORM_SCORE = 0.9
RETURN_PATH_PLATFORM_SCORE = 0.85


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Result of classifying one item.

    Attributes:
        type: Assigned category
        confidence: Confidence score (0.0-1.0)
        rule: Pipeline stage that decided the type ('transactional_override',
            'personal_override', 'weighted_score', 'category_override')
        signals: Strength of every signal that was evaluated
        score: Raw weighted sum (0.0 for override results)
        reason: Human-readable explanation
    """

    type: ItemCategory
    confidence: float
    rule: str
    signals: Mapping[str, float] = field(default_factory=dict)
    score: float = 0.0
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "type": self.type,
            "confidence": self.confidence,
            "rule": self.rule,
            "signals": dict(self.signals),
            "score": self.score,
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Safety overrides
# ---------------------------------------------------------------------------


def transactional_marker(item: NormalizedItem) -> str | None:
    """Return the transactional marker found in the sender local part or subject."""
    return search(TRANSACTIONAL_SENDER_PATTERN, item.local_part) or search(
        TRANSACTIONAL_SUBJECT_PATTERN, item.subject
    )


def is_transactional(item: NormalizedItem) -> bool:
    """Whether the item looks like a receipt, alert, booking or similar."""
    return transactional_marker(item) is not None


def is_personal(item: NormalizedItem) -> bool:
    """Whether the item looks like it was written by a person.

    True for a free-mail domain with a "first.last" / "first_last" local part,
    or for any "First Last" display name.
    """
    if item.sender_domain.lower() in FREE_MAIL_DOMAINS and fullmatch(
        PERSONAL_LOCAL_PART_PATTERN, item.local_part
    ):
        return True
    return fullmatch(PERSONAL_DISPLAY_NAME_PATTERN, (item.sender_name or "").strip())


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


def _header(headers: Any, name: str) -> str | None:
    """Read a header value; anything malformed counts as absent."""
    if not isinstance(headers, Mapping):
        return None
    value = headers.get(name)
    if value is None:
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == name:
                value = candidate
                break
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def score_unsubscribe(item: NormalizedItem) -> float:
    """1.0 when a List-Unsubscribe target is advertised."""
    return 1.0 if item.unsubscribe.present else 0.0


def score_provider_category(item: NormalizedItem) -> float:
    """Strength of the provider's own bulk categorisation."""
    if PROMOTIONS_LABEL in item.labels or SOCIAL_LABEL in item.labels:
        return STRONG_CATEGORY_SCORE
    if UPDATES_LABEL in item.labels:
        # Updates also carries receipts and alerts
        return UPDATES_CATEGORY_SCORE
    return 0.0


def return_path_domain(item: NormalizedItem) -> str | None:
    """Domain of the Return-Path header, if parsable."""
    return_path = _header(item.headers, "return-path")
    if not return_path or "@" not in return_path:
        return None
    domain = return_path.strip("<> ").rpartition("@")[2].strip("<> ").lower()
    return domain or None


def score_sender_domain(item: NormalizedItem) -> float:
    """Match the sender (or Return-Path) domain against bulk-mail platforms."""
    if match_domain(item.sender_domain, MARKETING_PLATFORM_DOMAINS):
        return DIRECT_PLATFORM_SCORE
    if match_domain(return_path_domain(item), MARKETING_PLATFORM_DOMAINS):
        return RETURN_PATH_PLATFORM_SCORE
    return 0.0


def score_headers(item: NormalizedItem) -> float:
    """Strongest bulk-mail header pattern present (0.7-0.9), else 0."""
    headers = item.headers
    score = 0.0

    precedence = _header(headers, "precedence")
    if precedence and precedence.lower() == "bulk":
        score = max(score, 0.8)

    mailer = _header(headers, "x-mailer")
    if mailer and "campaign" in mailer.lower():
        score = max(score, 0.7)

    for name, weight in (
        ("x-list", 0.75),
        ("x-campaign-id", 0.8),
        ("x-newsletter", 0.9),
        ("x-sg-eid", 0.75),  # SendGrid
        ("x-mailgun-sid", 0.75),  # Mailgun
        ("x-mc-user", 0.85),  # Mailchimp
    ):
        if _header(headers, name):
            score = max(score, weight)

    return score


def _stat(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    return min(max(float(value), 0.0), 1.0)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(item: NormalizedItem, sender_stats: SenderStats | None = None) -> ClassificationResult:
    """Classify one item from its metadata.

    Args:
        item: The item to classify
        sender_stats: Historical sender statistics; defaults apply when None

    Returns:
        ClassificationResult (never raises for a well-formed item)
    """
    marker = transactional_marker(item)
    if marker:
        return ClassificationResult(
            type="transactional",
            confidence=TRANSACTIONAL_CONFIDENCE,
            rule="transactional_override",
            signals={"transactional_override": TRANSACTIONAL_CONFIDENCE},
            reason=f"Transactional marker '{marker}'",
        )

    if is_personal(item):
        return ClassificationResult(
            type="personal",
            confidence=PERSONAL_CONFIDENCE,
            rule="personal_override",
            signals={"personal_override": PERSONAL_CONFIDENCE},
            reason="Sender looks like a person",
        )

    if sender_stats is None:
        reputation, frequency = DEFAULT_REPUTATION, DEFAULT_FREQUENCY
    else:
        reputation = _stat(sender_stats.reputation_score, DEFAULT_REPUTATION)
        frequency = _stat(sender_stats.frequency_score, DEFAULT_FREQUENCY)

    signals = {
        "unsubscribe": score_unsubscribe(item),
        "provider_category": score_provider_category(item),
        "sender_domain": score_sender_domain(item),
        "header_pattern": score_headers(item),
        "reputation": reputation,
        "frequency": frequency,
        "html_metadata": 0.0,
    }

    score = (
        WEIGHTS["unsubscribe"] * signals["unsubscribe"]
        + WEIGHTS["sender_reputation"] * max(reputation, signals["sender_domain"])
        + WEIGHTS["provider_category"] * signals["provider_category"]
        + WEIGHTS["frequency"] * frequency
        + WEIGHTS["html_metadata"] * signals["html_metadata"]
        + WEIGHTS["header_pattern"] * signals["header_pattern"]
    )
    # Rounding keeps sums such as 0.35 + 0.40 on the intended side of a threshold
    score = round(score, 6)

    item_type: ItemCategory
    if score >= NEWSLETTER_THRESHOLD:
        item_type = "newsletter"
    elif score >= PROMO_THRESHOLD:
        item_type = "promo"
    elif score >= SOCIAL_THRESHOLD:
        item_type = "social"
    else:
        item_type = "unknown"

    rule = "weighted_score"
    if item_type == "unknown":
        if PROMOTIONS_LABEL in item.labels:
            item_type, rule = "promo", "category_override"
        elif SOCIAL_LABEL in item.labels:
            item_type, rule = "social", "category_override"

    return ClassificationResult(
        type=item_type,
        confidence=min(score, 1.0),
        rule=rule,
        signals=signals,
        score=score,
        reason=f"Weighted score {score:.2f}",
    )


def classify_batch(
    items: Iterable[NormalizedItem],
    stats_by_sender: Mapping[str, SenderStats] | None = None,
) -> dict[str, ClassificationResult]:
    """Classify items independently.

    Args:
        items: Items to classify
        stats_by_sender: Optional sender statistics keyed by sender address

    Returns:
        Mapping of item ID to ClassificationResult
    """
    start = time.perf_counter()
    stats_by_sender = stats_by_sender or {}
    results: dict[str, ClassificationResult] = {}

    for item in items:
        stats = stats_by_sender.get(item.sender) or stats_by_sender.get(item.sender.lower())
        results[item.id] = classify(item, stats)

    logger.debug(
        "batch_classified",
        count=len(results),
        duration_ms=round((time.perf_counter() - start) * 1000, 3),
    )
    return results
