"""In-memory provider and mock mailbox.

``InMemoryProvider`` keeps trash, spam, filters and sent mail in dicts and
sets, so buffer and orchestrator behaviour can be exercised end-to-end
without a network. Operations named in ``failing`` raise ProviderError.

``MockMailbox`` generates realistic bulk-mail items in batches and doubles
as a buffer refill source.
"""

from __future__ import annotations

import asyncio
import itertools
import random
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from swipe.core.errors import ProviderError
from swipe.models import NormalizedItem, UnsubscribeDescriptor
from swipe.providers.base import (
    INBOX_LABEL,
    SPAM_LABEL,
    TRASH_LABEL,
    ActionProvider,
    FilterResult,
    ProviderCapabilities,
)

ALL_CAPABILITIES = (
    ProviderCapabilities.TRASH
    | ProviderCapabilities.FILTERS
    | ProviderCapabilities.BULK_MODIFY
    | ProviderCapabilities.SEARCH
    | ProviderCapabilities.SEND_MAIL
    | ProviderCapabilities.MARK_SPAM
)


class InMemoryProvider(ActionProvider):
    """Mailbox held in memory.

    Attributes:
        messages: Known messages keyed by provider ID
        trashed: Provider IDs currently in trash
        spam: Provider IDs reported as spam
        filters: Filter criteria keyed by filter ID
        sent: (to, subject, body) of every sent message
        calls: Operation names in call order
    """

    name = "memory"

    def __init__(
        self,
        items: Iterable[NormalizedItem] = (),
        capabilities: ProviderCapabilities = ALL_CAPABILITIES,
        failing: Iterable[str] = (),
    ):
        self.capabilities = capabilities
        self.messages: dict[str, NormalizedItem] = {}
        self.trashed: set[str] = set()
        self.spam: set[str] = set()
        self.filters: dict[str, dict[str, str | None]] = {}
        self.sent: list[tuple[str, str, str]] = []
        self.calls: list[str] = []
        self.failing = set(failing)
        self._filter_ids = itertools.count(1)
        self.add(items)

    def add(self, items: Iterable[NormalizedItem]) -> None:
        for item in items:
            self.messages[item.provider_id] = item

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise ProviderError(
                f"Simulated failure of {operation}", operation=operation, status_code=503
            )

    def _matches(self, item: NormalizedItem, sender: str | None, domain: str | None) -> bool:
        if sender is not None:
            return item.sender.lower() == sender.lower()
        if domain is not None:
            return item.sender_domain == domain.lower()
        return False

    async def trash(self, provider_id: str) -> bool:
        self._check("trash")
        if provider_id not in self.messages:
            return False
        self.trashed.add(provider_id)
        return True

    async def untrash(self, provider_id: str) -> bool:
        self._check("untrash")
        if provider_id not in self.messages:
            return False
        self.trashed.discard(provider_id)
        return True

    async def create_filter(
        self, sender: str | None = None, domain: str | None = None
    ) -> FilterResult:
        self._check("create_filter")
        if not sender and not domain:
            return FilterResult(success=False)
        filter_id = f"filter-{next(self._filter_ids)}"
        self.filters[filter_id] = {"from": f"*@{domain}" if domain else sender}
        return FilterResult(success=True, filter_id=filter_id)

    async def delete_filter(self, filter_id: str) -> bool:
        self._check("delete_filter")
        return self.filters.pop(filter_id, None) is not None

    async def batch_modify(
        self,
        provider_ids: list[str],
        add_labels: list[str] | None = None,
        remove_labels: list[str] | None = None,
    ) -> bool:
        self._check("batch_modify")
        add_labels = add_labels or []
        remove_labels = remove_labels or []
        for provider_id in provider_ids:
            if provider_id not in self.messages:
                continue
            if TRASH_LABEL in add_labels:
                self.trashed.add(provider_id)
            if TRASH_LABEL in remove_labels:
                self.trashed.discard(provider_id)
            if SPAM_LABEL in add_labels:
                self.spam.add(provider_id)
        return True

    async def list_message_ids(
        self, sender: str | None = None, domain: str | None = None
    ) -> list[str]:
        self._check("list_message_ids")
        return [
            pid
            for pid, item in self.messages.items()
            if pid not in self.trashed and self._matches(item, sender, domain)
        ]

    async def list_senders(self, domain: str) -> list[str]:
        self._check("list_senders")
        return sorted(
            {item.sender for item in self.messages.values() if self._matches(item, None, domain)}
        )

    async def send_mail(self, to: str, subject: str, body: str) -> bool:
        self._check("send_mail")
        self.sent.append((to, subject, body))
        return True

    async def mark_as_spam(self, provider_id: str) -> bool:
        self._check("mark_as_spam")
        if provider_id not in self.messages:
            return False
        self.spam.add(provider_id)
        return True


# ---------------------------------------------------------------------------
# Mock mailbox
# ---------------------------------------------------------------------------

MOCK_SUBJECTS = (
    "Your weekly digest",
    "Special offer just for you!",
    "Someone replied to your comment",
    "Meet our new team member",
    "Invitation: Networking event",
    "Did you miss this?",
    "Top stories this week",
    "Last chance: 40% off",
)

# (display name, local part, domain, labels)
MOCK_SENDERS = (
    ("The Daily Digest", "digest", "news.example.com", ("CATEGORY_UPDATES",)),
    ("MEGA PROMO", "deals", "promo.example.io", ("CATEGORY_PROMOTIONS",)),
    ("SocialHub", "notify", "social.example.net", ("CATEGORY_SOCIAL",)),
    ("DevOps Weekly", "weekly", "devops.substack.com", ()),
    ("FinanceGuru", "tips", "money.example.com", ("CATEGORY_PROMOTIONS",)),
    ("SPAM LORD", "blast", "spam.example.com", ("CATEGORY_PROMOTIONS",)),
)


class MockMailbox:
    """Generates batches of bulk-mail items and registers them with a provider.

    Attributes:
        provider: Provider the generated items are added to
        latency: Simulated fetch latency in seconds
    """

    def __init__(
        self,
        provider: InMemoryProvider | None = None,
        seed: int = 0,
        latency: float = 0.0,
    ):
        self.provider = provider or InMemoryProvider()
        self.latency = latency
        self._random = random.Random(seed)
        self._next_id = 0

    def generate(self, count: int) -> list[NormalizedItem]:
        """Generate ``count`` items without any latency."""
        now = datetime.now(UTC)
        items = []
        for _ in range(count):
            item_id = str(self._next_id)
            self._next_id += 1
            name, local, domain, labels = self._random.choice(MOCK_SENDERS)
            items.append(
                NormalizedItem(
                    id=item_id,
                    provider_id=f"m-{item_id}",
                    sender=f"{local}@{domain}",
                    sender_name=name,
                    sender_domain=domain,
                    subject=f"{self._random.choice(MOCK_SUBJECTS)} #{item_id}",
                    received_at=now - timedelta(minutes=self._random.randint(1, 100_000)),
                    unsubscribe=UnsubscribeDescriptor(
                        http=f"https://{domain}/unsubscribe?u={item_id}",
                        mailto=f"unsubscribe@{domain}",
                    ),
                    category="newsletter",
                    labels=frozenset((INBOX_LABEL, *labels)),
                    headers={"precedence": "bulk"},
                    provider="memory",
                )
            )
        self.provider.add(items)
        return items

    async def fetch_batch(self, count: int = 50) -> list[NormalizedItem]:
        """Generate a batch after the simulated latency."""
        if self.latency:
            await asyncio.sleep(self.latency)
        return self.generate(count)

    def refill_source(self, batch_size: int = 50):
        """Zero-argument coroutine function suitable as a buffer refill source."""

        async def refill() -> list[NormalizedItem]:
            return await self.fetch_batch(batch_size)

        return refill
