"""Block-sender and domain-nuke flows.

Both flows gate on the safety policy, then issue provider calls one after
another, each paced by the token bucket.

- block_sender: create a sender filter (failure fails the action), then
  trash the sender's existing mail best-effort. A failed trash still
  counts as success; ``emails_deleted`` counts only the mail actually moved.
- nuke_domain: enumerate senders and mail for the domain, bulk trash, then
  create a domain filter. The three calls are independent, but a failed
  filter fails the action even though mail was already trashed; the counts
  in ``metadata`` report what happened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from swipe.classifier.safety import DEFAULT_POLICY, SafetyPolicy
from swipe.core.errors import ProviderError, RateLimitExceeded
from swipe.core.logging import get_logger
from swipe.providers.base import INBOX_LABEL, TRASH_LABEL, ProviderCapabilities

if TYPE_CHECKING:
    from swipe.core.rate_limiter import TokenBucket
    from swipe.models import NormalizedItem
    from swipe.providers.base import ActionProvider

logger = get_logger(__name__)

# Gmail batchModify accepts at most 1000 IDs per call
BATCH_MODIFY_LIMIT = 1000

FILTER_FAILED = "Failed to create filter"


@dataclass(frozen=True, slots=True)
class BlockOutcome:
    """Result of a block or domain-nuke flow.

    Attributes:
        success: Whether the action counts as done
        metadata: sender/domain, filter_id, emails_deleted, senders_blocked
        error: Denial reason or failure message
        denied: The safety policy refused the action
        requires_confirmation: The caller must re-invoke with consent
    """

    success: bool
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    denied: bool = False
    requires_confirmation: bool = False

    @property
    def filter_id(self) -> str | None:
        return self.metadata.get("filter_id")


class BlockEngine:
    """Runs block and domain-nuke flows against a provider."""

    def __init__(self, policy: SafetyPolicy = DEFAULT_POLICY, bucket: TokenBucket | None = None):
        self.policy = policy
        self.bucket = bucket

    async def _pace(self) -> None:
        if self.bucket is not None:
            await self.bucket.consume()

    async def block_sender(self, item: NormalizedItem, provider: ActionProvider) -> BlockOutcome:
        """Filter future mail from the item's sender and trash existing mail."""
        metadata: dict[str, Any] = {
            "sender": item.sender,
            "domain": item.sender_domain,
            "emails_deleted": 0,
        }

        verdict = self.policy.can_act_on_sender(item)
        if not verdict.allowed:
            return BlockOutcome(success=False, metadata=metadata, error=verdict.reason, denied=True)

        try:
            await self._pace()
            result = await provider.create_filter(sender=item.sender)
        except (ProviderError, RateLimitExceeded) as e:
            logger.warning("block_filter_failed", sender=item.sender, error=str(e))
            return BlockOutcome(success=False, metadata=metadata, error=f"{FILTER_FAILED}: {e}")
        if not result.success:
            logger.warning("block_filter_failed", sender=item.sender)
            return BlockOutcome(success=False, metadata=metadata, error=FILTER_FAILED)
        metadata["filter_id"] = result.filter_id

        try:
            await self._pace()
            message_ids = await provider.list_message_ids(sender=item.sender)
            metadata["emails_deleted"] = await self._trash_all(provider, message_ids)
        except (ProviderError, RateLimitExceeded) as e:
            logger.warning("block_bulk_delete_failed", sender=item.sender, error=str(e))

        logger.info(
            "sender_blocked",
            sender=item.sender,
            filter_id=result.filter_id,
            emails_deleted=metadata["emails_deleted"],
        )
        return BlockOutcome(success=True, metadata=metadata)

    async def nuke_domain(
        self, domain: str, provider: ActionProvider, confirmed: bool = False
    ) -> BlockOutcome:
        """Trash all mail from a domain and filter the domain."""
        domain = domain.lower()
        metadata: dict[str, Any] = {"domain": domain, "senders_blocked": 0, "emails_deleted": 0}

        verdict = self.policy.can_act_on_domain(domain)
        if not verdict.allowed:
            return BlockOutcome(success=False, metadata=metadata, error=verdict.reason, denied=True)
        if verdict.requires_confirmation and not confirmed:
            return BlockOutcome(
                success=False,
                metadata=metadata,
                error=verdict.reason,
                requires_confirmation=True,
            )

        try:
            await self._pace()
            metadata["senders_blocked"] = len(await provider.list_senders(domain))
        except (ProviderError, RateLimitExceeded) as e:
            logger.warning("nuke_list_senders_failed", domain=domain, error=str(e))

        try:
            await self._pace()
            message_ids = await provider.list_message_ids(domain=domain)
            metadata["emails_deleted"] = await self._trash_all(provider, message_ids)
        except (ProviderError, RateLimitExceeded) as e:
            logger.warning("nuke_bulk_delete_failed", domain=domain, error=str(e))

        try:
            await self._pace()
            result = await provider.create_filter(domain=domain)
        except (ProviderError, RateLimitExceeded) as e:
            logger.error(
                "nuke_filter_failed",
                domain=domain,
                emails_deleted=metadata["emails_deleted"],
                error=str(e),
            )
            return BlockOutcome(success=False, metadata=metadata, error=f"{FILTER_FAILED}: {e}")
        if not result.success:
            logger.error(
                "nuke_filter_failed", domain=domain, emails_deleted=metadata["emails_deleted"]
            )
            return BlockOutcome(success=False, metadata=metadata, error=FILTER_FAILED)

        metadata["filter_id"] = result.filter_id
        logger.info(
            "domain_nuked",
            domain=domain,
            senders_blocked=metadata["senders_blocked"],
            emails_deleted=metadata["emails_deleted"],
            filter_id=result.filter_id,
        )
        return BlockOutcome(success=True, metadata=metadata)

    async def _trash_all(self, provider: ActionProvider, provider_ids: list[str]) -> int:
        """Move messages to trash; returns how many were moved.

        Uses one batch_modify call per chunk when supported, otherwise trashes
        one message at a time. A failed chunk or message counts as zero moved
        and the rest are still attempted. Running out of rate budget stops the
        loop; the count so far is returned.
        """
        if not provider_ids:
            return 0

        if provider.supports(ProviderCapabilities.BULK_MODIFY):
            batches = [
                provider_ids[start : start + BATCH_MODIFY_LIMIT]
                for start in range(0, len(provider_ids), BATCH_MODIFY_LIMIT)
            ]
        else:
            batches = [[provider_id] for provider_id in provider_ids]

        moved = 0
        for batch in batches:
            try:
                await self._pace()
                if provider.supports(ProviderCapabilities.BULK_MODIFY):
                    done = await provider.batch_modify(
                        batch, add_labels=[TRASH_LABEL], remove_labels=[INBOX_LABEL]
                    )
                else:
                    done = await provider.trash(batch[0])
            except ProviderError as e:
                logger.warning("trash_batch_failed", size=len(batch), moved=moved, error=str(e))
                continue
            except RateLimitExceeded as e:
                logger.warning("trash_rate_limited", moved=moved, error=str(e))
                break
            if done:
                moved += len(batch)
        return moved
