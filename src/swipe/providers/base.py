"""Provider capability interface consumed by the action orchestrator.

A provider adapter wraps one mailbox API (Gmail, Outlook, IMAP). It
advertises what it can do through ``capabilities`` and implements the
matching coroutines. Unsupported operations keep the default
implementation, which raises ProviderError.

Failure contract: an operation reports failure by returning ``False`` (or
``FilterResult(success=False)``) or by raising ProviderError. The
orchestrator maps both to result values.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from enum import Flag, auto

from swipe.core.errors import ProviderError

# Labels used for trash moves through batch_modify
TRASH_LABEL = "TRASH"
INBOX_LABEL = "INBOX"
SPAM_LABEL = "SPAM"


class ProviderCapabilities(Flag):
    """Flags indicating which operations a provider supports."""

    NONE = 0
    TRASH = auto()  # trash / untrash single messages
    FILTERS = auto()  # create / delete sender and domain filters
    BULK_MODIFY = auto()  # relabel many messages in one call
    SEARCH = auto()  # enumerate message IDs and senders by sender/domain
    SEND_MAIL = auto()  # send a message (mailto unsubscribe)
    MARK_SPAM = auto()  # report a message as spam


@dataclass(frozen=True, slots=True)
class FilterResult:
    """Result of creating a provider-side filter.

    Attributes:
        success: Whether the filter was created
        filter_id: Provider-assigned filter ID (needed to undo)
    """

    success: bool
    filter_id: str | None = None


class ActionProvider(ABC):
    """Base class for provider adapters.

    Attributes:
        name: Human-readable provider name
        capabilities: Operations this provider supports
    """

    name: str = "abstract"
    capabilities: ProviderCapabilities = ProviderCapabilities.NONE

    def supports(self, capability: ProviderCapabilities) -> bool:
        """Whether every flag in ``capability`` is advertised."""
        return (self.capabilities & capability) == capability

    def _unsupported(self, operation: str) -> ProviderError:
        return ProviderError(
            f"Provider '{self.name}' does not support {operation}",
            operation=operation,
        )

    async def trash(self, provider_id: str) -> bool:
        """Move one message to trash (never a permanent delete)."""
        raise self._unsupported("trash")

    async def untrash(self, provider_id: str) -> bool:
        """Restore one message from trash."""
        raise self._unsupported("untrash")

    async def create_filter(
        self, sender: str | None = None, domain: str | None = None
    ) -> FilterResult:
        """Create a filter sending future mail from a sender or domain to trash."""
        raise self._unsupported("create_filter")

    async def delete_filter(self, filter_id: str) -> bool:
        """Delete a filter created by ``create_filter``."""
        raise self._unsupported("delete_filter")

    async def batch_modify(
        self,
        provider_ids: list[str],
        add_labels: list[str] | None = None,
        remove_labels: list[str] | None = None,
    ) -> bool:
        """Relabel many messages at once."""
        raise self._unsupported("batch_modify")

    async def list_message_ids(
        self, sender: str | None = None, domain: str | None = None
    ) -> list[str]:
        """Provider IDs of every message from a sender or domain."""
        raise self._unsupported("list_message_ids")

    async def list_senders(self, domain: str) -> list[str]:
        """Distinct sender addresses seen from a domain."""
        raise self._unsupported("list_senders")

    async def send_mail(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text message."""
        raise self._unsupported("send_mail")

    async def mark_as_spam(self, provider_id: str) -> bool:
        """Report one message as spam."""
        raise self._unsupported("mark_as_spam")
