"""Safety policy consulted before any destructive action.

Domains fall into trust tiers:
- ``never``: big tech, banks, government, airlines; never blocked or nuked
- ``caution``: commerce and subscription services; needs explicit consent
- ``free``: marketing platforms and newsletter services; freely actionable
- ``unknown``: anything else; actionable without confirmation

Matching is exact or by parent suffix ("mail.chase.com" is ``never`` through
"chase.com"; "irs.gov" through "gov"). Tiers are checked never -> caution ->
free and the first match wins.

Usage:
    from swipe.classifier.safety import DEFAULT_POLICY

    verdict = DEFAULT_POLICY.can_act_on_domain("news.example.com")
    if verdict.requires_confirmation:
        ...
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from swipe.classifier.patterns import match_domain
from swipe.classifier.scorer import is_personal, is_transactional

if TYPE_CHECKING:
    from swipe.config_schema import SafetyConfig
    from swipe.models import NormalizedItem

DomainTier = Literal["never", "caution", "free", "unknown"]

NEVER_DOMAINS: frozenset[str] = frozenset(
    {
        "google.com",
        "gmail.com",
        "apple.com",
        "icloud.com",
        "microsoft.com",
        "amazon.com",
        "facebook.com",
        "meta.com",
        "twitter.com",
        "x.com",
        "linkedin.com",
        "gov",
        "edu",
        "mil",
        # Banks
        "chase.com",
        "bankofamerica.com",
        "wellsfargo.com",
        "citibank.com",
        "usbank.com",
        # Airlines
        "united.com",
        "delta.com",
        "aa.com",
        "southwest.com",
    }
)

CAUTION_DOMAINS: frozenset[str] = frozenset(
    {
        "ebay.com",
        "etsy.com",
        "shopify.com",
        "netflix.com",
        "spotify.com",
        "hulu.com",
        "disneyplus.com",
        "hbomax.com",
    }
)

FREE_DOMAINS: frozenset[str] = frozenset(
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
        "revue.co",
        "buttondown.email",
        "getresponse.com",
        "activecampaign.com",
    }
)


@dataclass(frozen=True, slots=True)
class SafetyVerdict:
    """Outcome of a safety check.

    Attributes:
        allowed: Whether the action may proceed at all
        requires_confirmation: Whether the caller must pass explicit consent
        reason: Human-readable explanation when denied or gated
    """

    allowed: bool
    requires_confirmation: bool = False
    reason: str | None = None


class SafetyPolicy:
    """Domain trust tiers plus the sender and domain action predicates.

    Instances are immutable after construction; the tier tables are
    frozensets built once.
    """

    def __init__(
        self,
        never: Iterable[str] = NEVER_DOMAINS,
        caution: Iterable[str] = CAUTION_DOMAINS,
        free: Iterable[str] = FREE_DOMAINS,
    ):
        self._never = frozenset(d.lower() for d in never)
        self._caution = frozenset(d.lower() for d in caution)
        self._free = frozenset(d.lower() for d in free)

    @classmethod
    def from_config(cls, config: SafetyConfig) -> SafetyPolicy:
        """Build a policy from the built-in tables extended by config entries."""
        return cls(
            never=NEVER_DOMAINS | set(config.extra_never_domains),
            caution=CAUTION_DOMAINS | set(config.extra_caution_domains),
            free=FREE_DOMAINS | set(config.extra_free_domains),
        )

    def domain_tier(self, domain: str) -> DomainTier:
        """Classify a domain into its trust tier."""
        if match_domain(domain, self._never):
            return "never"
        if match_domain(domain, self._caution):
            return "caution"
        if match_domain(domain, self._free):
            return "free"
        return "unknown"

    def can_act_on_sender(self, item: NormalizedItem) -> SafetyVerdict:
        """Whether a sender-level action (block, unsubscribe) is permitted."""
        if is_personal(item):
            return SafetyVerdict(allowed=False, reason="Cannot block personal senders")
        if is_transactional(item):
            return SafetyVerdict(allowed=False, reason="Cannot block transactional senders")
        if self.domain_tier(item.sender_domain) == "never":
            return SafetyVerdict(
                allowed=False, reason="Cannot block senders from protected domains"
            )
        return SafetyVerdict(allowed=True)

    def can_act_on_domain(self, domain: str) -> SafetyVerdict:
        """Whether a domain-wide action is permitted.

        Unknown domains are allowed without confirmation.
        """
        tier = self.domain_tier(domain)
        if tier == "never":
            return SafetyVerdict(
                allowed=False, reason="This domain cannot be nuked (protected)"
            )
        if tier == "caution":
            return SafetyVerdict(
                allowed=True,
                requires_confirmation=True,
                reason="This domain may contain important emails. Please confirm.",
            )
        return SafetyVerdict(allowed=True)

    def domain_safety_info(self, domain: str) -> dict[str, Any]:
        """Summarise tier and domain-action verdict for display."""
        verdict = self.can_act_on_domain(domain)
        return {
            "domain": domain,
            "tier": self.domain_tier(domain),
            "can_act": verdict.allowed,
            "requires_confirmation": verdict.requires_confirmation,
            "message": verdict.reason,
        }


DEFAULT_POLICY = SafetyPolicy()


def domain_tier(domain: str) -> DomainTier:
    """Trust tier of a domain under the built-in policy."""
    return DEFAULT_POLICY.domain_tier(domain)


def can_act_on_sender(item: NormalizedItem) -> SafetyVerdict:
    """Sender-level verdict under the built-in policy."""
    return DEFAULT_POLICY.can_act_on_sender(item)


def can_act_on_domain(domain: str) -> SafetyVerdict:
    """Domain-level verdict under the built-in policy."""
    return DEFAULT_POLICY.can_act_on_domain(domain)
