"""Tests for domain trust tiers and the action predicates."""

import pytest

from swipe.classifier.safety import (
    DEFAULT_POLICY,
    SafetyPolicy,
    can_act_on_domain,
    can_act_on_sender,
    domain_tier,
)
from swipe.config_schema import SafetyConfig


class TestDomainTier:
    """Tier lookup by exact or suffix match."""

    @pytest.mark.parametrize(
        ("domain", "tier"),
        [
            ("chase.com", "never"),
            ("alerts.chase.com", "never"),
            ("irs.gov", "never"),
            ("Spotify.com", "caution"),
            ("news.mailchimp.com", "free"),
            ("substack.com", "free"),
            ("promo.example.com", "unknown"),
            ("notchase.com", "unknown"),
        ],
    )
    def test_tiers(self, domain, tier):
        assert domain_tier(domain) == tier

    def test_never_checked_before_free(self):
        """A domain listed in two tiers resolves to the stricter one."""
        policy = SafetyPolicy(never={"mailchimp.com"})
        assert policy.domain_tier("mailchimp.com") == "never"


class TestCanActOnSender:
    """Sender-level gate."""

    def test_personal_denied(self, make_item):
        verdict = can_act_on_sender(make_item(sender_name="Jane Doe"))
        assert not verdict.allowed
        assert verdict.reason == "Cannot block personal senders"

    def test_transactional_denied(self, make_item):
        verdict = can_act_on_sender(make_item(sender="billing@promo.example.com"))
        assert not verdict.allowed
        assert verdict.reason == "Cannot block transactional senders"

    def test_protected_domain_denied(self, make_item):
        verdict = can_act_on_sender(make_item(sender="deals@email.delta.com"))
        assert not verdict.allowed
        assert verdict.reason == "Cannot block senders from protected domains"

    def test_caution_domain_allowed(self, make_item):
        """The sender gate does not ask for confirmation."""
        verdict = can_act_on_sender(make_item(sender="deals@netflix.com"))
        assert verdict.allowed
        assert not verdict.requires_confirmation

    def test_unknown_allowed(self, make_item):
        assert can_act_on_sender(make_item()).allowed


class TestCanActOnDomain:
    """Domain-level gate."""

    def test_never(self):
        verdict = can_act_on_domain("google.com")
        assert not verdict.allowed
        assert verdict.reason == "This domain cannot be nuked (protected)"

    def test_caution_requires_confirmation(self):
        verdict = can_act_on_domain("etsy.com")
        assert verdict.allowed
        assert verdict.requires_confirmation
        assert "Please confirm" in verdict.reason

    def test_free(self):
        verdict = can_act_on_domain("beehiiv.com")
        assert verdict.allowed
        assert not verdict.requires_confirmation

    def test_unknown_needs_no_confirmation(self):
        verdict = can_act_on_domain("promo.example.com")
        assert verdict.allowed
        assert not verdict.requires_confirmation
        assert verdict.reason is None


class TestPolicyFromConfig:
    """Configured extensions."""

    def test_extra_domains(self):
        policy = SafetyPolicy.from_config(
            SafetyConfig(
                extra_never_domains=["mybank.example"],
                extra_caution_domains=["shop.example"],
                extra_free_domains=["blast.example"],
            )
        )
        assert policy.domain_tier("online.mybank.example") == "never"
        assert policy.domain_tier("shop.example") == "caution"
        assert policy.domain_tier("blast.example") == "free"
        # Built-ins are kept
        assert policy.domain_tier("chase.com") == "never"

    def test_default_policy_unchanged(self):
        SafetyPolicy.from_config(SafetyConfig(extra_never_domains=["promo.example.com"]))
        assert DEFAULT_POLICY.domain_tier("promo.example.com") == "unknown"

    def test_domain_safety_info(self):
        info = DEFAULT_POLICY.domain_safety_info("hulu.com")
        assert info == {
            "domain": "hulu.com",
            "tier": "caution",
            "can_act": True,
            "requires_confirmation": True,
            "message": "This domain may contain important emails. Please confirm.",
        }
