"""Tests for the adaptive buffer: windowing, grouping, refill and edits."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from swipe.config_schema import BufferConfig
from swipe.engine.buffer import AdaptiveBuffer, group_window

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _items(make_item, domain: str, start: int, count: int):
    return [
        make_item(item_id=f"{domain}-{i}", sender=f"news@{domain}")
        for i in range(start, start + count)
    ]


class RefillSpy:
    """Refill source returning queued batches and counting calls."""

    def __init__(self, batches=None, error: Exception | None = None):
        self.batches = list(batches or [])
        self.error = error
        self.calls = 0
        self.release: asyncio.Event | None = None

    async def __call__(self):
        self.calls += 1
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.batches.pop(0) if self.batches else []


def _window_ids(buffer: AdaptiveBuffer) -> list[str]:
    return [entry.item.id for entry in buffer.window]


def _assert_invariant(buffer: AdaptiveBuffer) -> None:
    queue_ids = {item.id for item in buffer.backing_queue}
    assert len(buffer.window) <= buffer.config.window_size
    for entry in buffer.window:
        assert set(entry.member_ids) <= queue_ids
        assert len(entry.member_ids) == entry.group_count


# ============================================================================
# Grouping
# ============================================================================


class TestGroupWindow:
    """Same-domain collapsing."""

    def test_five_collapse_four_do_not(self, make_item):
        """Five from A collapse; four from B stay singletons."""
        items = _items(make_item, "a.example", 0, 5) + _items(make_item, "b.example", 0, 4)
        entries = group_window(items, group_threshold=5)

        assert len(entries) == 5
        assert entries[0].is_group
        assert entries[0].group_count == 5
        assert entries[0].item.id == "a.example-0"
        assert all(not e.is_group for e in entries[1:])

    def test_order_follows_first_member(self, make_item):
        """A group appears where its first member was encountered."""
        items = (
            _items(make_item, "b.example", 0, 1)
            + _items(make_item, "a.example", 0, 3)
            + _items(make_item, "b.example", 1, 2)
            + _items(make_item, "a.example", 3, 2)
        )
        entries = group_window(items, group_threshold=5)

        assert [e.item.id for e in entries] == [
            "b.example-0",
            "a.example-0",
            "b.example-1",
            "b.example-2",
        ]
        assert entries[1].group_count == 5
        assert entries[1].member_ids == tuple(f"a.example-{i}" for i in range(5))

    def test_mixed_case_domains_group_together(self, make_item):
        domains = ["A.example", "a.example", "A.EXAMPLE", "a.Example", "a.example"]
        items = [
            make_item(item_id=str(i), sender=f"n@{d}", sender_domain=d)
            for i, d in enumerate(domains)
        ]

        entries = group_window(items, group_threshold=5)

        assert len(entries) == 1
        assert entries[0].group_count == 5
        assert entries[0].item.sender_domain == "a.example"

    def test_empty(self):
        assert group_window([]) == []


# ============================================================================
# Window projection
# ============================================================================


class TestWindow:
    """Window is the grouped head of the queue."""

    def test_window_limited_to_size(self, make_item):
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(15)]
        buffer = AdaptiveBuffer(items, RefillSpy(), BufferConfig(window_size=10, trigger_threshold=3))

        assert len(buffer.window) == 10
        assert buffer.pending_count == 15
        _assert_invariant(buffer)

    def test_twelve_same_domain_collapse_to_one(self, make_item):
        """Twelve items from one domain show as one group of the window slice."""
        items = _items(make_item, "promo.example.com", 0, 12)
        buffer = AdaptiveBuffer(items, RefillSpy(), BufferConfig(window_size=10, trigger_threshold=0))

        assert len(buffer.window) == 1
        assert buffer.window[0].group_count == 10
        assert buffer.pending_count == 12

    def test_snapshot(self, make_item):
        buffer = AdaptiveBuffer(_items(make_item, "a.example", 0, 2), RefillSpy())
        snapshot = buffer.snapshot()
        assert snapshot.pending_count == 2
        assert snapshot.fetching is False
        assert len(snapshot.window) == 2


# ============================================================================
# Consumption and refill
# ============================================================================


class TestConsume:
    """Consumption, trigger and refill."""

    async def test_consume_above_threshold_does_not_refill(self, make_item):
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(10)]
        spy = RefillSpy()
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("0")

        assert spy.calls == 0
        assert "0" not in _window_ids(buffer)
        assert buffer.pending_count == 9

    async def test_refill_at_threshold(self, make_item):
        """Dropping to the trigger refills before returning."""
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(4)]
        fresh = [make_item(item_id=f"new-{i}", sender=f"n@e{i}.example") for i in range(3)]
        spy = RefillSpy([fresh])
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("0")

        assert spy.calls == 1
        assert buffer.pending_count == 6
        assert _window_ids(buffer)[-3:] == ["new-0", "new-1", "new-2"]
        assert not buffer.is_fetching

    async def test_consume_many_removes_group(self, make_item):
        """Consuming every member of a group removes it from the window."""
        items = _items(make_item, "a.example", 0, 5) + [
            make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(6)
        ]
        buffer = AdaptiveBuffer(items, RefillSpy(), BufferConfig(window_size=20, trigger_threshold=2))
        group = buffer.window[0]
        assert group.is_group

        await buffer.consume_many(group.member_ids)

        assert buffer.pending_count == 6
        assert all(e.item.sender_domain != "a.example" for e in buffer.window)
        _assert_invariant(buffer)

    async def test_refill_dedupes_by_id(self, make_item):
        items = [make_item(item_id="1", sender="n@a.example"), make_item(item_id="2", sender="n@b.example")]
        spy = RefillSpy([[make_item(item_id="2", sender="n@b.example"), make_item(item_id="3", sender="n@c.example")]])
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("1")

        assert [item.id for item in buffer.backing_queue] == ["2", "3"]

    async def test_single_flight_refill(self, make_item):
        """A consume during an in-flight refill does not start another."""
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(5)]
        spy = RefillSpy([[make_item(item_id="new", sender="n@new.example")]])
        spy.release = asyncio.Event()
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=4))

        first = asyncio.create_task(buffer.consume_one("0"))
        await asyncio.sleep(0)
        assert buffer.is_fetching

        await buffer.consume_one("1")
        assert spy.calls == 1
        assert buffer.is_fetching

        spy.release.set()
        await first

        assert spy.calls == 1
        assert not buffer.is_fetching
        assert [item.id for item in buffer.backing_queue] == ["2", "3", "4", "new"]

    async def test_refill_source_awaited_without_arguments(self, make_item):
        """The refill source is a zero-argument coroutine function."""
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(4)]
        source = AsyncMock(return_value=[make_item(item_id="new", sender="n@new.example")])
        buffer = AdaptiveBuffer(items, source, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("0")

        source.assert_awaited_once_with()
        assert _window_ids(buffer) == ["1", "2", "3", "new"]

    async def test_failed_refill_clears_flag(self, make_item):
        """A raising source is logged and treated as empty."""
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(3)]
        spy = RefillSpy(error=RuntimeError("provider down"))
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("0")

        assert spy.calls == 1
        assert not buffer.is_fetching
        assert _window_ids(buffer) == ["1", "2"]

    async def test_failed_refill_retried_on_next_consume(self, make_item):
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(3)]
        spy = RefillSpy(error=RuntimeError("provider down"))
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=10, trigger_threshold=3))

        await buffer.consume_one("0")
        await buffer.consume_one("1")

        assert spy.calls == 2

    async def test_observers_see_fetching(self, make_item):
        items = [make_item(item_id=str(i), sender=f"n@d{i}.example") for i in range(2)]
        buffer = AdaptiveBuffer(items, RefillSpy(), BufferConfig(window_size=10, trigger_threshold=3))
        seen: list[bool] = []
        unsubscribe = buffer.subscribe(lambda snapshot: seen.append(snapshot.fetching))

        await buffer.consume_one("0")
        unsubscribe()
        buffer.reset([])

        assert seen == [True, False]


# ============================================================================
# Local edits
# ============================================================================


class TestEdits:
    """add_item, nuke_domain and reset."""

    def test_add_item_goes_first(self, make_item):
        buffer = AdaptiveBuffer(_items(make_item, "a.example", 0, 2), RefillSpy())
        restored = make_item(item_id="undo", sender="n@b.example")

        buffer.add_item(restored)

        assert _window_ids(buffer)[0] == "undo"
        assert buffer.pending_count == 3

    def test_add_item_replaces_duplicate(self, make_item):
        items = _items(make_item, "a.example", 0, 3)
        buffer = AdaptiveBuffer(items, RefillSpy())

        buffer.add_item(items[2])

        assert [item.id for item in buffer.backing_queue] == [
            "a.example-2",
            "a.example-0",
            "a.example-1",
        ]

    def test_nuke_domain(self, make_item):
        items = _items(make_item, "a.example", 0, 3) + _items(make_item, "b.example", 0, 2)
        buffer = AdaptiveBuffer(items, RefillSpy())

        removed = buffer.nuke_domain("A.example")

        assert removed == 3
        assert {item.sender_domain for item in buffer.backing_queue} == {"b.example"}
        _assert_invariant(buffer)

    def test_nuke_domain_with_mixed_case_item_domains(self, make_item):
        """Items built with a mixed-case domain are matched case-insensitively."""
        items = [
            make_item(item_id="1", sender="n@Shop.Example", sender_domain="Shop.Example"),
            make_item(item_id="2", sender="n@SHOP.example", sender_domain="SHOP.example"),
            make_item(item_id="3", sender="n@other.example"),
        ]
        buffer = AdaptiveBuffer(items, RefillSpy())

        removed = buffer.nuke_domain("shop.example")

        assert removed == 2
        assert _window_ids(buffer) == ["3"]
        _assert_invariant(buffer)

    def test_nuke_unknown_domain(self, make_item):
        buffer = AdaptiveBuffer(_items(make_item, "a.example", 0, 3), RefillSpy())
        assert buffer.nuke_domain("zzz.example") == 0
        assert buffer.pending_count == 3

    @pytest.mark.parametrize("threshold", [0, 2, 4])
    async def test_invariant_after_mixed_operations(self, make_item, threshold):
        items = _items(make_item, "a.example", 0, 6) + [
            make_item(item_id=str(i), sender=f"n@d{i % 3}.example") for i in range(9)
        ]
        spy = RefillSpy([_items(make_item, "c.example", 0, 7)])
        buffer = AdaptiveBuffer(items, spy, BufferConfig(window_size=8, trigger_threshold=threshold))

        await buffer.consume_one(buffer.window[0].item.id)
        _assert_invariant(buffer)
        buffer.add_item(make_item(item_id="back", sender="n@z.example"))
        _assert_invariant(buffer)
        buffer.nuke_domain("d1.example")
        _assert_invariant(buffer)
        await buffer.consume_many([e.item.id for e in buffer.window[:3]])
        _assert_invariant(buffer)
