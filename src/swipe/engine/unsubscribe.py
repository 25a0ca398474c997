"""Unsubscribe fallback chain.

An unsubscribe runs through an ordered list of strategies, each attempted
only when the previous one is unavailable or fails:

1. HTTP: HTTPS ``List-Unsubscribe`` link (GET, then POST on 400/405)
2. Mailto: send an unsubscribe message through the provider
3. Block: create a sender filter through the provider (fallback)
4. Spam: report the message as spam through the provider (fallback)

Before any strategy runs, ``check_unsubscribe_safety`` gates the sender.
Links through shorteners or tracking redirectors and senders from caution
domains need explicit confirmation.

Usage:
    chain = UnsubscribeChain.default(timeout=3.0)
    result = await chain.run(item, provider, policy, confirmed=False)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal
from urllib.parse import parse_qs, unquote, urlsplit

import httpx

from swipe.classifier.safety import DEFAULT_POLICY, SafetyPolicy, SafetyVerdict
from swipe.core.errors import ProviderError, RateLimitExceeded
from swipe.core.logging import get_logger
from swipe.providers.base import ProviderCapabilities

if TYPE_CHECKING:
    from swipe.core.rate_limiter import TokenBucket
    from swipe.models import NormalizedItem
    from swipe.providers.base import ActionProvider

logger = get_logger(__name__)

UnsubscribeMethod = Literal["http", "mailto", "block", "spam"]

# Shorteners and tracking redirectors; a link through one of these hides
# where the request actually lands
SHORTENER_HOSTS = ("bit.ly", "t.co", "goo.gl", "tinyurl.com", "ow.ly")
REDIRECTOR_PREFIXES = ("track.", "redirect.", "click.")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)
POST_BODY = {"unsubscribe": "true"}

DEFAULT_MAILTO_TEXT = "unsubscribe"
ALL_METHODS_FAILED = "All unsubscribe methods failed"


def is_suspicious_link(url: str) -> bool:
    """Whether a link goes through a shortener or a tracking redirector.

    A link that cannot be parsed counts as suspicious.
    """
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return True
    if not host:
        return False
    if host.startswith(REDIRECTOR_PREFIXES):
        return True
    return any(host == s or host.endswith(f".{s}") for s in SHORTENER_HOSTS)


def check_unsubscribe_safety(
    item: NormalizedItem, policy: SafetyPolicy = DEFAULT_POLICY
) -> SafetyVerdict:
    """Gate an unsubscribe on the sender policy, link shape and domain tier."""
    verdict = policy.can_act_on_sender(item)
    if not verdict.allowed:
        return verdict

    if item.unsubscribe.http and is_suspicious_link(item.unsubscribe.http):
        return SafetyVerdict(
            allowed=True,
            requires_confirmation=True,
            reason="Unsubscribe link looks suspicious. Please confirm.",
        )

    if policy.domain_tier(item.sender_domain) == "caution":
        return SafetyVerdict(
            allowed=True,
            requires_confirmation=True,
            reason="This sender is from a domain that may send important emails.",
        )

    return SafetyVerdict(allowed=True)


def parse_mailto(target: str) -> tuple[str, str, str]:
    """Split a mailto target into (to, subject, body).

    Accepts both ``mailto:a@b.com?subject=x`` and the bare ``a@b.com?subject=x``
    form. Subject and body default to "unsubscribe".
    """
    if target[:7].lower() == "mailto:":
        target = target[7:]
    address, _, query = target.partition("?")
    params = parse_qs(query)
    subject = (params.get("subject") or [""])[0] or DEFAULT_MAILTO_TEXT
    body = (params.get("body") or [""])[0] or DEFAULT_MAILTO_TEXT
    return unquote(address).strip(), subject, body


@dataclass(frozen=True, slots=True)
class UnsubscribeOutcome:
    """A successful strategy attempt.

    Attributes:
        method: Strategy that succeeded
        fallback_used: Whether the strategy is a substitute for unsubscribing
        metadata: Strategy-specific details (url, mailto, sender, filter_id)
    """

    method: UnsubscribeMethod
    fallback_used: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UnsubscribeResult:
    """Result of a whole unsubscribe run.

    Attributes:
        success: Whether any strategy succeeded
        method: Strategy that succeeded (None on failure)
        fallback_used: Whether a fallback strategy produced the success
        requires_confirmation: The gate wants explicit consent
        denied: The sender policy refused the unsubscribe
        error: Denial reason or failure message
        metadata: Strategy metadata of the successful attempt
    """

    success: bool
    method: UnsubscribeMethod | None = None
    fallback_used: bool = False
    requires_confirmation: bool = False
    denied: bool = False
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class UnsubscribeStrategy(ABC):
    """One stage of the fallback chain.

    Stages that call the provider take a token from ``bucket`` first.
    """

    method: UnsubscribeMethod
    bucket: TokenBucket | None = None

    async def _pace(self) -> None:
        if self.bucket is not None:
            await self.bucket.consume()

    @abstractmethod
    async def attempt(
        self, item: NormalizedItem, provider: ActionProvider
    ) -> UnsubscribeOutcome | None:
        """Try this stage; None when unavailable or unsuccessful."""


class HttpUnsubscribe(UnsubscribeStrategy):
    """GET the HTTPS unsubscribe link, POSTing a form on 400/405.

    The whole request round (GET plus optional POST) is bounded by
    ``timeout`` and retried exactly once after ``retry_backoff`` seconds.

    Attributes:
        timeout: Seconds allowed for one request round
        retry_backoff: Seconds to wait before the single retry
    """

    method = "http"

    def __init__(
        self,
        timeout: float = 3.0,
        retry_backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.retry_backoff = retry_backoff
        self._transport = transport
        self._client = client

    async def attempt(
        self, item: NormalizedItem, provider: ActionProvider
    ) -> UnsubscribeOutcome | None:
        url = item.unsubscribe.http
        if not url:
            return None
        if not url.lower().startswith("https://"):
            logger.info("unsubscribe_http_refused", item_id=item.id, reason="not_https")
            return None
        try:
            urlsplit(url)
            httpx.URL(url)
        except (ValueError, httpx.InvalidURL) as e:
            logger.info(
                "unsubscribe_http_refused", item_id=item.id, reason="invalid_url", error=str(e)
            )
            return None

        for round_number in (1, 2):
            try:
                async with asyncio.timeout(self.timeout):
                    status = await self._request_round(url)
                if status is None:
                    return UnsubscribeOutcome(method="http", metadata={"url": url})
                logger.warning(
                    "unsubscribe_http_rejected",
                    item_id=item.id,
                    status_code=status,
                    attempt=round_number,
                )
            except (httpx.HTTPError, httpx.InvalidURL, TimeoutError) as e:
                logger.warning(
                    "unsubscribe_http_error",
                    item_id=item.id,
                    error=str(e) or type(e).__name__,
                    attempt=round_number,
                )
            if round_number == 1:
                await asyncio.sleep(self.retry_backoff)
        return None

    async def _request_round(self, url: str) -> int | None:
        """One GET (plus POST on 400/405). Returns None on success, else the status."""
        if self._client is not None:
            return await self._send(self._client, url)
        async with httpx.AsyncClient(
            transport=self._transport, timeout=self.timeout, follow_redirects=True
        ) as client:
            return await self._send(client, url)

    async def _send(self, client: httpx.AsyncClient, url: str) -> int | None:
        headers = {"User-Agent": USER_AGENT}
        response = await client.get(url, headers=headers, follow_redirects=True)
        if response.is_success:
            return None
        if response.status_code in (400, 405):
            response = await client.post(
                url, headers=headers, data=POST_BODY, follow_redirects=True
            )
            if response.is_success:
                return None
        return response.status_code


class MailtoUnsubscribe(UnsubscribeStrategy):
    """Send the unsubscribe message through the provider."""

    method = "mailto"

    def __init__(self, bucket: TokenBucket | None = None):
        self.bucket = bucket

    async def attempt(
        self, item: NormalizedItem, provider: ActionProvider
    ) -> UnsubscribeOutcome | None:
        if not item.unsubscribe.mailto or not provider.supports(ProviderCapabilities.SEND_MAIL):
            return None
        to, subject, body = parse_mailto(item.unsubscribe.mailto)
        if not to:
            return None
        await self._pace()
        if await provider.send_mail(to, subject, body):
            return UnsubscribeOutcome(method="mailto", metadata={"mailto": item.unsubscribe.mailto})
        return None


class BlockFallback(UnsubscribeStrategy):
    """Substitute a sender filter for the unsubscribe."""

    method = "block"

    def __init__(self, bucket: TokenBucket | None = None):
        self.bucket = bucket

    async def attempt(
        self, item: NormalizedItem, provider: ActionProvider
    ) -> UnsubscribeOutcome | None:
        if not provider.supports(ProviderCapabilities.FILTERS):
            return None
        await self._pace()
        result = await provider.create_filter(sender=item.sender)
        if not result.success:
            return None
        return UnsubscribeOutcome(
            method="block",
            fallback_used=True,
            metadata={"sender": item.sender, "filter_id": result.filter_id},
        )


class SpamFallback(UnsubscribeStrategy):
    """Report the message as spam as a last resort."""

    method = "spam"

    def __init__(self, bucket: TokenBucket | None = None):
        self.bucket = bucket

    async def attempt(
        self, item: NormalizedItem, provider: ActionProvider
    ) -> UnsubscribeOutcome | None:
        if not provider.supports(ProviderCapabilities.MARK_SPAM):
            return None
        await self._pace()
        if await provider.mark_as_spam(item.provider_id):
            return UnsubscribeOutcome(
                method="spam", fallback_used=True, metadata={"item_id": item.id}
            )
        return None


class UnsubscribeChain:
    """Ordered strategies run until one succeeds."""

    def __init__(self, strategies: Sequence[UnsubscribeStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def default(
        cls,
        timeout: float = 3.0,
        retry_backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
        bucket: TokenBucket | None = None,
    ) -> UnsubscribeChain:
        """HTTP -> mailto -> block -> spam, provider stages paced by ``bucket``."""
        return cls(
            [
                HttpUnsubscribe(
                    timeout=timeout,
                    retry_backoff=retry_backoff,
                    transport=transport,
                    client=client,
                ),
                MailtoUnsubscribe(bucket=bucket),
                BlockFallback(bucket=bucket),
                SpamFallback(bucket=bucket),
            ]
        )

    async def run(
        self,
        item: NormalizedItem,
        provider: ActionProvider,
        policy: SafetyPolicy = DEFAULT_POLICY,
        confirmed: bool = False,
    ) -> UnsubscribeResult:
        """Gate the item, then try each strategy in order."""
        verdict = check_unsubscribe_safety(item, policy)
        if not verdict.allowed:
            return UnsubscribeResult(success=False, denied=True, error=verdict.reason)
        if verdict.requires_confirmation and not confirmed:
            return UnsubscribeResult(
                success=False, requires_confirmation=True, error=verdict.reason
            )

        for strategy in self.strategies:
            try:
                outcome = await strategy.attempt(item, provider)
            except (ProviderError, RateLimitExceeded) as e:
                logger.warning(
                    "unsubscribe_stage_failed",
                    item_id=item.id,
                    method=strategy.method,
                    error=str(e),
                )
                continue
            if outcome is not None:
                logger.info(
                    "unsubscribe_succeeded",
                    item_id=item.id,
                    method=outcome.method,
                    fallback_used=outcome.fallback_used,
                )
                return UnsubscribeResult(
                    success=True,
                    method=outcome.method,
                    fallback_used=outcome.fallback_used,
                    metadata=outcome.metadata,
                )

        logger.warning("unsubscribe_failed", item_id=item.id, sender=item.sender)
        return UnsubscribeResult(success=False, fallback_used=True, error=ALL_METHODS_FAILED)
