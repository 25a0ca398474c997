"""Metadata-only classification and safety policy.

This package provides:
- Deterministic scoring of items into newsletter/promo/social/transactional/
  personal/unknown
- Domain trust tiers and the sender/domain action predicates
"""

from swipe.classifier.safety import (
    DEFAULT_POLICY,
    DomainTier,
    SafetyPolicy,
    SafetyVerdict,
    can_act_on_domain,
    can_act_on_sender,
    domain_tier,
)
from swipe.classifier.scorer import (
    ClassificationResult,
    classify,
    classify_batch,
    is_personal,
    is_transactional,
)

__all__ = [
    # Scorer
    "ClassificationResult",
    "classify",
    "classify_batch",
    "is_personal",
    "is_transactional",
    # Safety policy
    "DEFAULT_POLICY",
    "DomainTier",
    "SafetyPolicy",
    "SafetyVerdict",
    "can_act_on_domain",
    "can_act_on_sender",
    "domain_tier",
]
