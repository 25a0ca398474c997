"""Action/undo orchestrator.

Executes one of five disposal actions against a provider and keeps an
in-memory undo table keyed by opaque tokens. Every successful action gets a
token that stays live for the undo window (30 seconds by default).

Actions:
- delete: move to trash; undo restores from trash
- unsubscribe: fallback chain (HTTP, mailto, block, spam); undo is a no-op
- block: sender filter plus best-effort trash of existing mail; undo
  deletes the filter (trashed mail is not restored)
- keep: no provider call; undo is a no-op
- domain_nuke: trash all mail from a domain plus a domain filter; undo
  deletes the filter

All failures come back as values. ProviderError raised by a provider is
turned into a failed result, never propagated to the caller.

Usage:
    orchestrator = ActionOrchestrator(config=get_config().actions)
    result = await orchestrator.execute("delete", item, provider)
    if result.success:
        await orchestrator.undo(result.undo_token, provider)
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from swipe.classifier.safety import DEFAULT_POLICY, SafetyPolicy
from swipe.config_schema import ActionsConfig
from swipe.core.errors import ProviderError, RateLimitExceeded
from swipe.core.logging import action_context, get_logger
from swipe.core.rate_limiter import TokenBucket
from swipe.engine.block import BlockEngine
from swipe.engine.unsubscribe import UnsubscribeChain

if TYPE_CHECKING:
    import httpx

    from swipe.models import NormalizedItem
    from swipe.providers.base import ActionProvider

logger = get_logger(__name__)

ActionKind = Literal["delete", "unsubscribe", "block", "keep", "domain_nuke"]
ActionOutcome = Literal["success", "denied", "confirmation_required", "failed"]

ACTION_KINDS: tuple[str, ...] = ("delete", "unsubscribe", "block", "keep", "domain_nuke")

UNDO_NOT_FOUND = "Undo token not found or expired"
UNDO_EXPIRED = "Undo window has expired"


@dataclass(frozen=True, slots=True)
class ActionOptions:
    """Caller-supplied options for ``execute``.

    Attributes:
        confirmed: Explicit consent for actions gated on confirmation
        domain: Target domain for domain_nuke (defaults to the item's domain)
    """

    confirmed: bool = False
    domain: str | None = None


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Result of one ``execute`` call.

    Attributes:
        outcome: success, denied, confirmation_required or failed
        action: Action kind that was requested
        undo_token: Token for ``undo`` (only on success)
        undo_expiry: Clock time after which the token is dead (only on success)
        metadata: Action-specific details and counts
    """

    outcome: ActionOutcome
    action: str
    undo_token: str | None = None
    undo_expiry: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.outcome == "success"

    @property
    def requires_confirmation(self) -> bool:
        return self.outcome == "confirmation_required"

    @property
    def error(self) -> str | None:
        return self.metadata.get("error")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome,
            "action": self.action,
            "undo_token": self.undo_token,
            "undo_expiry": self.undo_expiry,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class UndoRecord:
    """What is needed to reverse one action.

    Attributes:
        action: Action kind
        item_id: Stable ID of the item acted on
        provider_id: Provider message ID (untrash target)
        sender: Sender address of the item
        domain: Domain acted on
        created_at: Clock time the action succeeded
        filter_id: Filter created by block or domain_nuke
    """

    action: str
    item_id: str
    provider_id: str
    sender: str
    domain: str
    created_at: float
    filter_id: str | None = None


@dataclass(frozen=True, slots=True)
class UndoResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ActionLogEntry:
    """Action log row handed to the persistence layer.

    Attributes:
        id: Log entry ID
        user_id: User who swiped
        item_id: Item acted on
        action: Action kind
        timestamp: When the entry was built (UTC)
        provider: Provider name of the item
        metadata: success, undo_token and the action metadata
    """

    id: str
    user_id: str
    item_id: str
    action: str
    timestamp: datetime
    provider: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_id": self.item_id,
            "action": self.action,
            "timestamp": self.timestamp.isoformat(),
            "provider": self.provider,
            "metadata": dict(self.metadata),
        }


def build_action_log(user_id: str, item: NormalizedItem, result: ActionResult) -> ActionLogEntry:
    """Build the action log entry for an executed action."""
    return ActionLogEntry(
        id=str(uuid.uuid4()),
        user_id=user_id,
        item_id=item.id,
        action=result.action,
        timestamp=datetime.now(UTC),
        provider=item.provider,
        metadata={"success": result.success, "undo_token": result.undo_token, **result.metadata},
    )


# (outcome, metadata, undo record to store on success)
_Step = tuple[ActionOutcome, dict[str, Any], UndoRecord | None]


class ActionOrchestrator:
    """Executes actions and owns the undo table for one session.

    Attributes:
        undo_window: Seconds a token stays live
        policy: Safety policy consulted before destructive calls
    """

    def __init__(
        self,
        config: ActionsConfig | None = None,
        policy: SafetyPolicy = DEFAULT_POLICY,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        bucket: TokenBucket | None = None,
        unsubscribe_chain: UnsubscribeChain | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        config = config or ActionsConfig()
        self.undo_window = config.undo_window_seconds
        self.policy = policy
        self._clock = clock
        self._token_factory = token_factory
        self._bucket = bucket or TokenBucket(
            rate=config.provider_rate, capacity=config.provider_capacity
        )
        self._unsubscribe = unsubscribe_chain or UnsubscribeChain.default(
            timeout=config.unsubscribe_timeout_seconds,
            retry_backoff=config.unsubscribe_retry_backoff_seconds,
            transport=http_transport,
            bucket=self._bucket,
        )
        self._blocker = BlockEngine(policy=policy, bucket=self._bucket)
        self._undo_records: dict[str, UndoRecord] = {}
        self._handlers: dict[
            str, Callable[[NormalizedItem, ActionProvider, ActionOptions], Awaitable[_Step]]
        ] = {
            "delete": self._delete,
            "unsubscribe": self._unsubscribe_item,
            "block": self._block,
            "keep": self._keep,
            "domain_nuke": self._domain_nuke,
        }

    @property
    def pending_undo_count(self) -> int:
        return len(self._undo_records)

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    async def execute(
        self,
        action: str,
        item: NormalizedItem,
        provider: ActionProvider,
        options: ActionOptions | None = None,
    ) -> ActionResult:
        """Execute one action and mint an undo token on success."""
        options = options or ActionOptions()
        self.sweep_expired()

        with action_context(action=action, item_id=item.id):
            handler = self._handlers.get(action)
            if handler is None:
                logger.warning("action_unknown")
                return ActionResult(
                    outcome="failed", action=action, metadata={"error": "Unknown action"}
                )

            outcome, metadata, record = await handler(item, provider, options)
            if outcome != "success" or record is None:
                logger.info("action_not_executed", outcome=outcome, error=metadata.get("error"))
                return ActionResult(outcome=outcome, action=action, metadata=metadata)

            token = self._token_factory()
            self._undo_records[token] = record
            expiry = record.created_at + self.undo_window
            logger.info("action_executed", undo_token=token, undo_expiry=expiry)
            return ActionResult(
                outcome="success",
                action=action,
                undo_token=token,
                undo_expiry=expiry,
                metadata=metadata,
            )

    def _record(
        self,
        action: str,
        item: NormalizedItem,
        domain: str | None = None,
        filter_id: str | None = None,
    ) -> UndoRecord:
        return UndoRecord(
            action=action,
            item_id=item.id,
            provider_id=item.provider_id,
            sender=item.sender,
            domain=domain or item.sender_domain,
            created_at=self._clock(),
            filter_id=filter_id,
        )

    async def _delete(
        self, item: NormalizedItem, provider: ActionProvider, options: ActionOptions
    ) -> _Step:
        try:
            await self._bucket.consume()
            trashed = await provider.trash(item.provider_id)
        except (ProviderError, RateLimitExceeded) as e:
            return "failed", {"item_id": item.id, "error": f"Failed to delete email: {e}"}, None
        if not trashed:
            return "failed", {"item_id": item.id, "error": "Failed to delete email"}, None
        return "success", {"item_id": item.id}, self._record("delete", item)

    async def _unsubscribe_item(
        self, item: NormalizedItem, provider: ActionProvider, options: ActionOptions
    ) -> _Step:
        result = await self._unsubscribe.run(
            item, provider, policy=self.policy, confirmed=options.confirmed
        )
        metadata: dict[str, Any] = {
            "method": result.method,
            "fallback_used": result.fallback_used,
            **result.metadata,
        }
        if result.denied:
            return "denied", {**metadata, "error": result.error}, None
        if result.requires_confirmation:
            return (
                "confirmation_required",
                {**metadata, "requires_confirmation": True, "reason": result.error},
                None,
            )
        if not result.success:
            return "failed", {**metadata, "error": result.error}, None
        return "success", metadata, self._record("unsubscribe", item)

    async def _block(
        self, item: NormalizedItem, provider: ActionProvider, options: ActionOptions
    ) -> _Step:
        outcome = await self._blocker.block_sender(item, provider)
        if outcome.denied:
            return "denied", {**outcome.metadata, "error": outcome.error}, None
        if not outcome.success:
            return "failed", {**outcome.metadata, "error": outcome.error}, None
        return (
            "success",
            outcome.metadata,
            self._record("block", item, filter_id=outcome.filter_id),
        )

    async def _keep(
        self, item: NormalizedItem, provider: ActionProvider, options: ActionOptions
    ) -> _Step:
        metadata = {"item_id": item.id, "sender": item.sender, "domain": item.sender_domain}
        return "success", metadata, self._record("keep", item)

    async def _domain_nuke(
        self, item: NormalizedItem, provider: ActionProvider, options: ActionOptions
    ) -> _Step:
        domain = options.domain or item.sender_domain
        outcome = await self._blocker.nuke_domain(domain, provider, confirmed=options.confirmed)
        if outcome.denied:
            return "denied", {**outcome.metadata, "error": outcome.error}, None
        if outcome.requires_confirmation:
            return (
                "confirmation_required",
                {**outcome.metadata, "requires_confirmation": True, "reason": outcome.error},
                None,
            )
        if not outcome.success:
            return "failed", {**outcome.metadata, "error": outcome.error}, None
        return (
            "success",
            outcome.metadata,
            self._record("domain_nuke", item, domain=domain.lower(), filter_id=outcome.filter_id),
        )

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    async def undo(self, token: str, provider: ActionProvider) -> UndoResult:
        """Reverse an action while its token is live.

        The record is removed on success and on expiry; a failed reversal
        keeps it so the caller can retry within the window.
        """
        with action_context(undo_token=token):
            record = self._undo_records.get(token)
            if record is None:
                logger.info("undo_not_found")
                return UndoResult(success=False, error=UNDO_NOT_FOUND)

            if self._expired(record, self._clock()):
                del self._undo_records[token]
                logger.info("undo_expired", action=record.action)
                return UndoResult(success=False, error=UNDO_EXPIRED)

            try:
                error = await self._reverse(record, provider)
            except (ProviderError, RateLimitExceeded) as e:
                error = str(e)
            if error is not None:
                logger.warning("undo_failed", action=record.action, error=error)
                return UndoResult(success=False, error=error)

            self._undo_records.pop(token, None)
            logger.info("undo_succeeded", action=record.action, item_id=record.item_id)
            return UndoResult(success=True)

    async def _reverse(self, record: UndoRecord, provider: ActionProvider) -> str | None:
        """Perform the kind-specific reversal; returns an error message or None."""
        if record.action == "delete":
            await self._bucket.consume()
            if not await provider.untrash(record.provider_id):
                return "Failed to untrash email"
        elif record.action in ("block", "domain_nuke"):
            if record.filter_id:
                await self._bucket.consume()
                if not await provider.delete_filter(record.filter_id):
                    return "Failed to delete filter"
        return None

    def remaining_undo_time(self, token: str) -> float | None:
        """Seconds left on a token, or None when unknown or elapsed."""
        record = self._undo_records.get(token)
        if record is None:
            return None
        remaining = self.undo_window - (self._clock() - record.created_at)
        return remaining if remaining > 0 else None

    def sweep_expired(self) -> int:
        """Drop records whose window has elapsed; returns how many were dropped."""
        now = self._clock()
        expired = [t for t, r in self._undo_records.items() if self._expired(r, now)]
        for token in expired:
            del self._undo_records[token]
        if expired:
            logger.debug("undo_records_swept", count=len(expired))
        return len(expired)

    def _expired(self, record: UndoRecord, now: float) -> bool:
        return now - record.created_at > self.undo_window
