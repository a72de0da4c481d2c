"""
Tests for Channex webhook event normalization

Tests cover:
- Envelope validation (fail-closed, nothing stored on rejection)
- payload / payloads normalization
- Per-type projections (message, review, ari, sync_error, ...)
- Attachment and review score fan-out
- Detail failure aborts the envelope, sub-entity failure does not
- Rebuilding a Channex-style envelope from stored records
"""

import itertools

import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


class FakeEventStore:
    """Records every create call and hands out sequential ids"""

    def __init__(self):
        self._ids = itertools.count(1)
        self.events = []
        self.details = []
        self.attachments = []
        self.review_scores = []
        self.review_ota_scores = []

    def _next_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    def create_event(self, property_id, event_type, user_id=None):
        event = {
            "id": self._next_id("ev"),
            "property_id": property_id,
            "event_type": event_type,
            "user_id": user_id,
            "created_at": "2026-10-18T10:00:00",
        }
        self.events.append(event)
        return event

    def create_detail(self, event_id, fields):
        detail = {"id": self._next_id("det"), "event_id": event_id, **fields}
        self.details.append(detail)
        return detail

    def _batch(self, target, detail_id, items):
        stored = [{"id": self._next_id("sub"), "event_detail_id": detail_id, **item} for item in items]
        target.extend(stored)
        return stored

    def create_attachments(self, detail_id, items):
        return self._batch(self.attachments, detail_id, items)

    def create_review_scores(self, detail_id, items):
        return self._batch(self.review_scores, detail_id, items)

    def create_review_ota_scores(self, detail_id, items):
        return self._batch(self.review_ota_scores, detail_id, items)


def ingest(envelope, store=None):
    from channex_sync.services.event_normalizer import EventIngestor

    store = store or FakeEventStore()
    return EventIngestor(store).ingest(envelope), store


class TestValidation:
    """Rejected envelopes must not store anything"""

    @pytest.mark.parametrize("envelope, message", [
        ([], "JSON object"),
        ({"property_id": "ch-p1", "payload": {}}, '"event"'),
        ({"event": "booking_new", "property_id": "ch-p1", "payload": {}}, "Unsupported event type"),
        ({"event": "ari", "payload": {}}, '"property_id"'),
        ({"event": "ari", "property_id": "ch-p1"}, "at least one payload"),
        ({"event": "ari", "property_id": "ch-p1", "payloads": []}, "at least one payload"),
        ({"event": "ari", "property_id": "ch-p1", "payloads": ["x"]}, "must be a JSON object"),
        ({"event": "message", "property_id": "ch-p1", "payload": {"sender": "guest"}}, '"message"'),
        ({"event": "message", "property_id": "ch-p1", "payload": {"message": "hi", "sender": None}}, '"sender"'),
    ])
    def test_rejected(self, envelope, message):
        from channex_sync.services.errors import WebhookValidationError

        store = FakeEventStore()
        with pytest.raises(WebhookValidationError) as exc:
            ingest(envelope, store)

        assert message in str(exc.value)
        assert store.events == []

    def test_unsupported_type_lists_supported(self):
        from channex_sync.services.errors import WebhookValidationError
        from channex_sync.services.event_normalizer import validate_envelope

        with pytest.raises(WebhookValidationError) as exc:
            validate_envelope({"event": "nope", "property_id": "ch-p1", "payload": {}})

        assert "message, ari, booking" in str(exc.value)

    def test_empty_message_text_allowed(self):
        """An empty string is a message; only a missing one is rejected"""
        from channex_sync.services.event_normalizer import EventType, validate_envelope

        event_type, payloads = validate_envelope({
            "event": "message", "property_id": "ch-p1", "payload": {"message": "", "sender": ""},
        })

        assert event_type is EventType.MESSAGE
        assert len(payloads) == 1

    def test_payloads_preferred_over_payload(self):
        from channex_sync.services.event_normalizer import normalize_payloads

        payloads = normalize_payloads({"payload": {"a": 1}, "payloads": [{"b": 2}, {"c": 3}]})

        assert payloads == [{"b": 2}, {"c": 3}]


class TestMessageEvents:

    def test_message_with_attachment(self):
        result, store = ingest({
            "event": "message",
            "property_id": "ch-p1",
            "user_id": "u1",
            "payload": {
                "message": "hi",
                "sender": "guest",
                "booking_id": "b1",
                "attachments": [{"filename": "a.png", "type": "image/png", "size": 100}],
            },
        })

        assert result.detail_count == 1
        assert store.events[0]["event_type"] == "message"
        assert store.events[0]["user_id"] == "u1"
        detail = store.details[0]
        assert detail["message"] == "hi"
        assert detail["sender"] == "guest"
        assert detail["booking_id"] == "b1"
        assert detail["message_thread_id"] is None
        assert detail["have_attachment"] is False
        assert len(store.attachments) == 1
        attachment = store.attachments[0]
        assert (attachment["filename"], attachment["type"], attachment["size"]) == ("a.png", "image/png", 100)
        assert attachment["event_detail_id"] == detail["id"]

    def test_payloads_stored_in_order(self):
        result, store = ingest({
            "event": "message",
            "property_id": "ch-p1",
            "payloads": [
                {"message": "first", "sender": "guest"},
                {"message": "second", "sender": "property"},
            ],
        })

        assert [d["message"] for d in store.details] == ["first", "second"]
        assert all(d["event_id"] == result.event_id for d in store.details)


class TestReviewEvents:

    def test_review_score_fan_out(self):
        result, store = ingest({
            "event": "review",
            "property_id": "ch-p1",
            "payload": {"id": "r1", "scores": [{"category": "cleanliness", "score": 9}], "ota_scores": []},
        })

        assert len(store.details) == 1
        assert store.details[0]["review_id"] == "r1"
        assert [(s["category"], s["score"]) for s in store.review_scores] == [("cleanliness", 9)]
        assert store.review_ota_scores == []

    def test_review_fields_renamed(self):
        from channex_sync.services.event_normalizer import project_review

        detail = project_review({
            "id": "r1",
            "property_id": "ch-review-prop",
            "channel_id": "CH9",
            "content": "Great stay",
            "reply": "",
            "overall_score": 9.4,
            "is_replied": False,
        })

        assert detail["review_id"] == "r1"
        assert detail["review_property_id"] == "ch-review-prop"
        assert detail["review_channel_id"] == "CH9"
        assert "channel_id" not in detail
        assert detail["content"] == "Great stay"
        assert detail["reply"] is None
        assert detail["overall_score"] == 9.4
        assert detail["is_replied"] is False
        assert "id" not in detail

    def test_score_defaults(self):
        from channex_sync.services.event_normalizer import extract_scores

        assert extract_scores({"scores": [{}, "bad"]}, "scores") == [{"category": "", "score": 0}]
        assert extract_scores({"scores": None}, "scores") == []


class TestOtherProjections:

    def test_ari(self):
        from channex_sync.services.event_normalizer import project_detail

        detail = project_detail("ari", {
            "availability": 0, "booked": 2, "date": "2026-03-01",
            "rate_plan_id": "ch-rp", "room_type_id": "ch-rt", "stop_sell": True,
        })

        assert detail == {
            "availability": 0, "booked": 2, "date": "2026-03-01",
            "rate_plan_id": "ch-rp", "room_type_id": "ch-rt", "stop_sell": True,
        }

    def test_booking_unmapped(self):
        from channex_sync.services.event_normalizer import project_detail

        detail = project_detail("booking_unmapped_rate", {"booking_id": "b1", "booking_revision_id": "rev1"})

        assert detail == {"booking_id": "b1", "booking_revision_id": "rev1"}

    def test_sync_error_empty_strings_become_none(self):
        from channex_sync.services.event_normalizer import project_detail

        detail = project_detail("sync_error", {"channel": "Booking.com", "error_type": ""})

        assert detail["channel"] == "Booking.com"
        assert detail["error_type"] is None
        assert detail["property_name"] is None

    def test_unknown_type_kept_whole(self):
        from channex_sync.services.event_normalizer import project_detail

        assert project_detail("something_new", {"x": 1}) == {"meta": {"x": 1}}


class TestFailureHandling:

    def test_detail_failure_aborts_envelope(self):
        store = FakeEventStore()
        original = store.create_detail
        calls = []

        def flaky(event_id, fields):
            calls.append(fields)
            if len(calls) == 2:
                raise RuntimeError("insert failed")
            return original(event_id, fields)

        store.create_detail = flaky

        with pytest.raises(RuntimeError):
            ingest({
                "event": "ari",
                "property_id": "ch-p1",
                "payloads": [{"date": "2026-03-01"}, {"date": "2026-03-02"}, {"date": "2026-03-03"}],
            }, store)

        # header and the first detail stay, the third is never attempted
        assert len(store.events) == 1
        assert [d["date"] for d in store.details] == ["2026-03-01"]
        assert len(calls) == 2

    def test_sub_entity_failure_keeps_detail(self):
        store = FakeEventStore()

        def broken(detail_id, items):
            raise RuntimeError("scores table missing")

        store.create_review_scores = broken

        result, _ = ingest({
            "event": "review",
            "property_id": "ch-p1",
            "payload": {"id": "r1", "scores": [{"category": "staff", "score": 10}],
                        "ota_scores": [{"category": "value", "score": 8}]},
        }, store)

        assert result.detail_count == 1
        assert result.payloads[0].review_scores == []
        assert len(store.review_ota_scores) == 1


class TestChannexFormat:

    def test_single_message_rebuilt(self):
        result, _ = ingest({
            "event": "message",
            "property_id": "ch-p1",
            "user_id": "u1",
            "payload": {
                "id": "m1", "message": "hi", "sender": "guest", "have_attachment": True,
                "attachments": [{"filename": "a.png", "type": "image/png", "size": 100}],
            },
        })

        envelope = result.to_channex_format()

        assert envelope["event"] == "message"
        assert envelope["property_id"] == "ch-p1"
        assert envelope["timestamp"] == "2026-10-18T10:00:00"
        assert "payloads" not in envelope
        payload = envelope["payload"]
        assert payload["id"] == "m1"
        assert payload["message"] == "hi"
        assert payload["have_attachment"] is True
        assert payload["attachments"] == [{"filename": "a.png", "type": "image/png", "size": 100}]

    def test_multiple_reviews_rebuilt(self):
        result, _ = ingest({
            "event": "review",
            "property_id": "ch-p1",
            "payloads": [
                {"id": "r1", "scores": [{"category": "staff", "score": 10}]},
                {"id": "r2", "content": "ok"},
            ],
        })

        envelope = result.to_channex_format()

        assert "payload" not in envelope
        first, second = envelope["payloads"]
        assert first["id"] == "r1"
        assert first["scores"] == [{"category": "staff", "score": 10}]
        assert second["content"] == "ok"
        assert second["property_id"] == "ch-p1"
