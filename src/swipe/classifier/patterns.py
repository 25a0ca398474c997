"""Fixed vocabularies and domain tables used by the scorer and safety policy.

All tables are built once at import time. Domain tables are frozensets
queried through ``match_domain()``, which walks the label suffixes of a
domain ("a.b.example.com" -> "b.example.com" -> "example.com" -> "com"), so a
lookup costs a handful of set probes regardless of table size.

Vocabulary matching uses the ``regex`` module with a per-call timeout so no
input can stall batch classification.
"""

from __future__ import annotations

from collections.abc import Iterable

import regex

# Regex timeout (seconds) passed at match time
REGEX_TIMEOUT = 1.0

# Sender local-part markers of transactional mail
TRANSACTIONAL_SENDER_MARKERS = (
    "noreply",
    "no-reply",
    "do-not-reply",
    "donotreply",
    "receipt",
    "order",
    "invoice",
    "confirmation",
    "shipping",
    "tracking",
    "security",
    "verify",
    "verification",
    "password",
    "reset",
    "account",
    "billing",
    "payment",
    "support",
    "help",
    "service",
)

# Subject markers of transactional mail
TRANSACTIONAL_SUBJECT_MARKERS = (
    "order confirmation",
    "shipping confirmation",
    "your receipt",
    "your order",
    "password reset",
    "verify your",
    "confirm your",
    "security alert",
    "login attempt",
    "payment received",
    "invoice",
    "statement",
    "appointment",
    "reservation",
    "booking confirmation",
    "flight",
    "itinerary",
)


def _alternation(markers: Iterable[str]) -> regex.Pattern[str]:
    # Longest first so overlapping markers report the most specific hit
    ordered = sorted(markers, key=len, reverse=True)
    return regex.compile("|".join(regex.escape(m) for m in ordered), regex.IGNORECASE)


TRANSACTIONAL_SENDER_PATTERN = _alternation(TRANSACTIONAL_SENDER_MARKERS)
TRANSACTIONAL_SUBJECT_PATTERN = _alternation(TRANSACTIONAL_SUBJECT_MARKERS)

# "jane.doe" / "jane_doe" local parts
PERSONAL_LOCAL_PART_PATTERN = regex.compile(r"^[a-z]+[._][a-z]+$", regex.IGNORECASE)

# "Jane Doe" display names
PERSONAL_DISPLAY_NAME_PATTERN = regex.compile(r"^[A-Z][a-z]+\s+[A-Z][a-z]+$")

# Consumer mailbox providers: mail from here is usually a person
FREE_MAIL_DOMAINS: frozenset[str] = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "icloud.com",
        "aol.com",
        "protonmail.com",
        "zoho.com",
        "fastmail.com",
    }
)

# Bulk-mail sending platforms
MARKETING_PLATFORM_DOMAINS: frozenset[str] = frozenset(
    {
        "mailchimp.com",
        "sendgrid.net",
        "mailgun.org",
        "constantcontact.com",
        "substack.com",
        "campaignmonitor.com",
        "convertkit.com",
        "klaviyo.com",
        "mailerlite.com",
        "sendinblue.com",
        "drip.com",
        "beehiiv.com",
        "getresponse.com",
        "activecampaign.com",
        "aweber.com",
        "mailjet.com",
        "sparkpost.com",
        "postmarkapp.com",
        "mandrill.com",
        "sailthru.com",
        "braze.com",
        "iterable.com",
        "customer.io",
        "intercom.com",
    }
)

# Provider labels marking bulk categories
PROMOTIONS_LABEL = "CATEGORY_PROMOTIONS"
SOCIAL_LABEL = "CATEGORY_SOCIAL"
UPDATES_LABEL = "CATEGORY_UPDATES"


def domain_suffixes(domain: str) -> list[str]:
    """Return the domain and each of its parent suffixes, longest first."""
    labels = domain.strip().lower().rstrip(".").split(".")
    return [".".join(labels[i:]) for i in range(len(labels)) if labels[i]]


def match_domain(domain: str | None, table: frozenset[str]) -> str | None:
    """Exact or suffix match of a domain against a table.

    Returns:
        The matching table entry, or None
    """
    if not domain:
        return None
    for suffix in domain_suffixes(domain):
        if suffix in table:
            return suffix
    return None


def search(pattern: regex.Pattern[str], text: str | None) -> str | None:
    """Search text with the module timeout; return the matched marker or None.

    A timeout counts as no match.
    """
    if not text:
        return None
    try:
        match = pattern.search(text, timeout=REGEX_TIMEOUT)
    except TimeoutError:
        return None
    return match.group(0).lower() if match else None


def fullmatch(pattern: regex.Pattern[str], text: str | None) -> bool:
    """Full-match text with the module timeout (timeout counts as no match)."""
    if not text:
        return False
    try:
        return pattern.fullmatch(text, timeout=REGEX_TIMEOUT) is not None
    except TimeoutError:
        return False
