"""Tests for event decoding."""

import datetime as dt
import pytest
from pydantic import ValidationError

from relay.models.event import Event, EventDecodeError, decode_event


class TestDecodeEvent:
    """Tests for decode_event."""

    def test_full_event(self):
        event = decode_event(
            b'{"id": "e1", "type": "payment", "timestamp": "2023-10-27T10:05:00Z", '
            b'"data": {"amount": 100, "currency": "USD"}}'
        )

        assert event.id == "e1"
        assert event.type == "payment"
        assert event.timestamp == dt.datetime(2023, 10, 27, 10, 5, tzinfo=dt.UTC)
        assert event.data == {"amount": 100, "currency": "USD"}

    def test_missing_fields_default(self):
        event = decode_event(b'{"type": "registration"}')

        assert event.id == ""
        assert event.timestamp is None
        assert event.data == {}

    def test_null_data_is_empty(self):
        assert decode_event(b'{"type": "x", "data": null}').data == {}

    def test_unknown_fields_ignored(self):
        assert decode_event(b'{"type": "x", "extra": true}').type == "x"

    @pytest.mark.parametrize(
        "body",
        [
            b"",
            b"{not json",
            b"[1, 2]",
            b'"just a string"',
            b'{"type": 5}',
            b'{"type": "x", "data": [1]}',
            b'{"type": "x", "timestamp": "yesterday"}',
        ],
    )
    def test_invalid_bodies_raise(self, body):
        with pytest.raises(EventDecodeError):
            decode_event(body)

    def test_event_is_immutable(self):
        event = Event(type="x")
        with pytest.raises(ValidationError):
            event.type = "y"
