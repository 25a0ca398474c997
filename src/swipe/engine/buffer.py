"""Adaptive buffer feeding the swipe UI.

The buffer owns an ordered backing queue (insertion order = priority) and
projects its first ``window_size`` entries into an active window. Dense
clusters from one sender domain inside that slice collapse into a single
group entry (a "boss group"). The window is recomputed from scratch after
every mutation, never patched incrementally.

When consumption drains the active window down to ``trigger_threshold`` the
buffer calls its refill source and waits for it. At most one refill runs at
a time; a consumption that crosses the threshold while a refill is in flight
does not start another. A failing refill source is logged and treated as an
empty batch.

Usage:
    from swipe.engine.buffer import AdaptiveBuffer

    buffer = AdaptiveBuffer(initial_items, refill=fetch_more, config=config.buffer)
    buffer.subscribe(render)
    await buffer.consume_one(buffer.window[0].item.id)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from swipe.config_schema import BufferConfig
from swipe.core.logging import get_logger

if TYPE_CHECKING:
    from swipe.models import NormalizedItem

logger = get_logger(__name__)

RefillSource = Callable[[], Awaitable[list["NormalizedItem"]]]


@dataclass(frozen=True, slots=True)
class BufferItem:
    """One entry of the active window.

    Attributes:
        item: The item itself, or the representative of a group
        group_count: Number of queue items this entry stands for
        member_ids: IDs of every item this entry stands for, in queue order
    """

    item: NormalizedItem
    group_count: int = 1
    member_ids: tuple[str, ...] = ()

    @property
    def is_group(self) -> bool:
        return self.group_count > 1


@dataclass(frozen=True, slots=True)
class BufferSnapshot:
    """What the UI needs to render: the window, the backlog, the spinner."""

    window: tuple[BufferItem, ...]
    pending_count: int
    fetching: bool


BufferObserver = Callable[[BufferSnapshot], None]


def group_window(
    items: list[NormalizedItem], group_threshold: int = 5
) -> list[BufferItem]:
    """Collapse same-domain clusters of a window slice.

    Scans in order; each not-yet-processed item pulls in every unprocessed
    item of the slice with the same sender domain. A set of at least
    ``group_threshold`` items becomes one group entry represented by its
    first member, anything smaller is emitted as a singleton. Entries appear
    in the order their first member is encountered.
    """
    by_domain: dict[str, list[NormalizedItem]] = {}
    for item in items:
        by_domain.setdefault(item.sender_domain, []).append(item)

    entries: list[BufferItem] = []
    processed: set[str] = set()
    for item in items:
        if item.id in processed:
            continue
        same_domain = [m for m in by_domain[item.sender_domain] if m.id not in processed]
        if len(same_domain) >= group_threshold:
            entries.append(
                BufferItem(
                    item=same_domain[0],
                    group_count=len(same_domain),
                    member_ids=tuple(m.id for m in same_domain),
                )
            )
            processed.update(m.id for m in same_domain)
        else:
            entries.append(BufferItem(item=item, member_ids=(item.id,)))
            processed.add(item.id)
    return entries


class AdaptiveBuffer:
    """Bounded, self-refilling window over a backing queue for one session.

    Not safe for concurrent mutation from several callers; only the refill is
    single-flight.

    Attributes:
        config: Window, trigger and grouping sizes
    """

    def __init__(
        self,
        initial_items: Iterable[NormalizedItem],
        refill: RefillSource,
        config: BufferConfig | None = None,
    ):
        self.config = config or BufferConfig()
        self._refill_source = refill
        self._queue: list[NormalizedItem] = list(initial_items)
        self._window: list[BufferItem] = []
        self._fetching = False
        self._observers: list[BufferObserver] = []
        self._sync_window()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def window(self) -> tuple[BufferItem, ...]:
        """The grouped projection of the head of the queue."""
        return tuple(self._window)

    @property
    def backing_queue(self) -> tuple[NormalizedItem, ...]:
        return tuple(self._queue)

    @property
    def pending_count(self) -> int:
        """Items still queued (window included)."""
        return len(self._queue)

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    def snapshot(self) -> BufferSnapshot:
        return BufferSnapshot(
            window=self.window,
            pending_count=self.pending_count,
            fetching=self._fetching,
        )

    def subscribe(self, observer: BufferObserver) -> Callable[[], None]:
        """Register a window-change observer.

        Returns:
            A callable that removes the observer again
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def consume_one(self, item_id: str) -> None:
        """Remove one item, refilling first if the window runs low."""
        await self.consume_many([item_id])

    async def consume_many(self, item_ids: Iterable[str]) -> None:
        """Remove items, refilling first if the window runs low.

        Returns only after any refill this call triggered has completed.
        """
        ids = set(item_ids)
        self._queue = [item for item in self._queue if item.id not in ids]
        # The trigger looks at the cached window, before it is recomputed
        self._window = [entry for entry in self._window if entry.item.id not in ids]

        if len(self._window) <= self.config.trigger_threshold and not self._fetching:
            await self._refill()
        else:
            self._sync_window()

    def add_item(self, item: NormalizedItem) -> None:
        """Put an item back at the head of the queue (undo re-queue)."""
        self._queue = [item] + [existing for existing in self._queue if existing.id != item.id]
        self._sync_window()

    def nuke_domain(self, domain: str) -> int:
        """Drop every queued item from a sender domain (local edit only).

        Returns:
            Number of items removed
        """
        before = len(self._queue)
        domain = domain.lower()
        self._queue = [item for item in self._queue if item.sender_domain != domain]
        removed = before - len(self._queue)
        logger.info("buffer_domain_removed", domain=domain, removed=removed)
        self._sync_window()
        return removed

    def reset(self, items: Iterable[NormalizedItem]) -> None:
        """Replace the whole queue."""
        self._queue = list(items)
        self._sync_window()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _refill(self) -> None:
        self._fetching = True
        self._notify()
        added = 0
        try:
            new_items = await self._refill_source()
            known = {item.id for item in self._queue}
            for item in new_items or ():
                if item.id not in known:
                    self._queue.append(item)
                    known.add(item.id)
                    added += 1
        except Exception as e:
            # A failed refill is an empty refill; the next low-water crossing retries
            logger.warning(
                "buffer_refill_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._fetching = False
            logger.debug("buffer_refilled", added=added, pending=len(self._queue))
            self._sync_window()

    def _sync_window(self) -> None:
        head = self._queue[: self.config.window_size]
        self._window = group_window(head, self.config.group_threshold)
        self._notify()

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            observer(snapshot)
