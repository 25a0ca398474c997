"""Provider-side collaborators.

- Capability interface implemented by mailbox adapters
- Gmail metadata normalization into NormalizedItem
- In-memory provider and mock mailbox
"""

from swipe.providers.base import ActionProvider, FilterResult, ProviderCapabilities
from swipe.providers.memory import InMemoryProvider, MockMailbox
from swipe.providers.normalize import normalize_gmail_message, parse_list_unsubscribe

__all__ = [
    "ActionProvider",
    "FilterResult",
    "ProviderCapabilities",
    "InMemoryProvider",
    "MockMailbox",
    "normalize_gmail_message",
    "parse_list_unsubscribe",
]
