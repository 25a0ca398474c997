"""Tests for Gmail metadata normalization and the item model."""

from datetime import UTC, datetime

from swipe.models import NormalizedItem
from swipe.providers.normalize import (
    category_from_labels,
    normalize_gmail_message,
    parse_list_unsubscribe,
)

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


def _make_raw_message(
    msg_id: str = "18c2f0a1",
    sender: str = '"Weekly Deals" <Deals@Promo.Example.com>',
    subject: str | None = "This week only",
    labels: tuple[str, ...] = ("INBOX", "UNREAD", "CATEGORY_PROMOTIONS"),
    extra_headers: list[dict[str, str]] | None = None,
) -> dict:
    """Create a raw Gmail metadata message for testing."""
    headers = [{"name": "From", "value": sender}]
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})
    headers += extra_headers or []
    return {
        "id": msg_id,
        "threadId": "t-1",
        "labelIds": list(labels),
        "snippet": "Save big this week",
        "internalDate": "1700000000000",
        "payload": {"headers": headers},
    }


class TestParseListUnsubscribe:
    """List-Unsubscribe header parsing."""

    def test_both_targets(self):
        descriptor = parse_list_unsubscribe(
            "<mailto:leave@promo.example.com?subject=unsub>, <https://promo.example.com/u?id=7>"
        )
        assert descriptor.http == "https://promo.example.com/u?id=7"
        assert descriptor.mailto == "leave@promo.example.com?subject=unsub"
        assert descriptor.present

    def test_missing(self):
        assert not parse_list_unsubscribe(None).present
        assert not parse_list_unsubscribe("garbage").present


class TestNormalizeGmailMessage:
    """Metadata payload -> NormalizedItem."""

    def test_basic_fields(self):
        item = normalize_gmail_message(_make_raw_message())

        assert item.id == "18c2f0a1"
        assert item.provider_id == "18c2f0a1"
        assert item.sender == "deals@promo.example.com"
        assert item.sender_name == "Weekly Deals"
        assert item.sender_domain == "promo.example.com"
        assert item.subject == "This week only"
        assert item.category == "promo"
        assert item.received_at == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert item.preview == "Save big this week"
        assert not item.is_read

    def test_detection_headers_kept(self):
        item = normalize_gmail_message(
            _make_raw_message(
                extra_headers=[
                    {"name": "Precedence", "value": "bulk"},
                    {"name": "X-MC-User", "value": "abc"},
                    {"name": "Received", "value": "from somewhere"},
                    {"name": "List-Unsubscribe", "value": "<https://promo.example.com/u>"},
                ]
            )
        )
        assert item.headers == {"precedence": "bulk", "x-mc-user": "abc"}
        assert item.unsubscribe.http == "https://promo.example.com/u"

    def test_first_return_path_wins(self):
        item = normalize_gmail_message(
            _make_raw_message(
                extra_headers=[
                    {"name": "Return-Path", "value": "<bounce@mail.mailchimp.com>"},
                    {"name": "Return-Path", "value": "<other@relay.example>"},
                ]
            )
        )
        assert item.headers["return-path"] == "<bounce@mail.mailchimp.com>"

    def test_missing_subject(self):
        item = normalize_gmail_message(_make_raw_message(subject=None))
        assert item.subject == "(no subject)"

    def test_read_message(self):
        item = normalize_gmail_message(_make_raw_message(labels=("INBOX",)))
        assert item.is_read
        assert item.category == "unknown"

    def test_bad_internal_date(self):
        raw = _make_raw_message()
        raw["internalDate"] = "not-a-number"
        assert normalize_gmail_message(raw).received_at.year == 1970

    def test_category_precedence(self):
        assert category_from_labels(frozenset({"CATEGORY_SOCIAL", "CATEGORY_PROMOTIONS"})) == "promo"


class TestItemDicts:
    """NormalizedItem JSON form."""

    def test_from_dict_derives_fields(self):
        item = NormalizedItem.from_dict(
            {
                "id": 7,
                "sender": "news@Letters.Example",
                "received_at": "2026-01-02T03:04:05Z",
                "category": "bogus",
                "headers": {"Precedence": "bulk"},
                "unsubscribe": {"mailto": "leave@letters.example"},
            }
        )
        assert item.id == "7"
        assert item.provider_id == "7"
        assert item.sender_domain == "letters.example"
        assert item.received_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert item.category == "unknown"
        assert item.headers == {"precedence": "bulk"}
        assert item.unsubscribe.mailto == "leave@letters.example"

    def test_to_dict_is_loadable(self, make_item):
        item = make_item(labels=("B", "A"), http="https://promo.example.com/u")
        data = item.to_dict()
        assert data["labels"] == ["A", "B"]
        assert NormalizedItem.from_dict(data) == item

    def test_local_part(self, make_item):
        assert make_item(sender="deals@promo.example.com").local_part == "deals"
