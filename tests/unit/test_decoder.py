"""Tests for EventDecoder."""

from __future__ import annotations

import logging

import pytest

from nestapi.errors import StreamDecodeError
from nestapi.protocol.decoder import EventDecoder
from nestapi.protocol.events import EventType
from nestapi.protocol.frames import Frame


def make_frame(event: str, data: str) -> Frame:
    return Frame(event_line=f"event: {event}".encode(), data_line=f"data: {data}".encode())


@pytest.fixture
def decoder() -> EventDecoder:
    return EventDecoder()


class TestDataEvents:
    """put / patch frames."""

    def test_put(self, decoder: EventDecoder) -> None:
        event = decoder.decode(make_frame("put", '{"path":"/","data":{"a":1}}'))

        assert event is not None
        assert event.type == EventType.PUT
        assert event.path == "/"
        assert event.data == {"a": 1}
        assert event.raw_data == '{"path":"/","data":{"a":1}}'

    def test_patch(self, decoder: EventDecoder) -> None:
        event = decoder.decode(make_frame("patch", '{"path":"/devices/t1","data":{"hvac":"off"}}'))

        assert event is not None
        assert event.type == EventType.PATCH
        assert event.path == "/devices/t1"
        assert event.data == {"hvac": "off"}

    def test_null_data(self, decoder: EventDecoder) -> None:
        event = decoder.decode(make_frame("put", '{"path":"/","data":null}'))

        assert event is not None
        assert event.data is None

    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            "[1, 2]",
            '{"data": 1}',
            '{"path": 7, "data": 1}',
        ],
    )
    def test_bad_payload_raises(self, decoder: EventDecoder, payload: str) -> None:
        with pytest.raises(StreamDecodeError):
            decoder.decode(make_frame("put", payload))


class TestControlEvents:
    """Frames that produce nothing or end the session."""

    def test_keep_alive_produces_nothing(self, decoder: EventDecoder) -> None:
        assert decoder.decode(make_frame("keep-alive", "null")) is None

    def test_rules_debug_is_logged_not_delivered(
        self, decoder: EventDecoder, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="nestapi.protocol.decoder")

        assert decoder.decode(make_frame("rules_debug", '"read allowed"')) is None
        assert any("Rules-Debug" in record.message for record in caplog.records)

    def test_cancel(self, decoder: EventDecoder) -> None:
        event = decoder.decode(make_frame("cancel", "null"))

        assert event is not None
        assert event.type == EventType.CANCEL
        assert event.data is None
        assert event.is_terminal()

    def test_auth_revoked_carries_raw_string(self, decoder: EventDecoder) -> None:
        event = decoder.decode(make_frame("auth_revoked", "credential is no longer valid"))

        assert event is not None
        assert event.type == EventType.AUTH_REVOKED
        assert event.data == "credential is no longer valid"
        assert event.is_terminal()


class TestUnrecognizedFrames:
    @pytest.mark.parametrize("event_type", ["delete", "event_error", "", "PUT"])
    def test_unknown_type_raises(self, decoder: EventDecoder, event_type: str) -> None:
        with pytest.raises(StreamDecodeError, match="Unrecognized event type"):
            decoder.decode(make_frame(event_type, "null"))

    def test_invalid_utf8_raises(self, decoder: EventDecoder) -> None:
        frame = Frame(event_line=b"event: put", data_line=b"data: \xff\xfe")

        with pytest.raises(StreamDecodeError):
            decoder.decode(frame)


class TestEventTypeMatchesLine:
    """The decoded type is the trimmed event line after the prefix."""

    @pytest.mark.parametrize(
        ("line", "data", "expected"),
        [
            ("put", '{"path":"/","data":1}', EventType.PUT),
            ("patch  ", '{"path":"/","data":1}', EventType.PATCH),
            ("cancel", "null", EventType.CANCEL),
            ("auth_revoked", "expired", EventType.AUTH_REVOKED),
        ],
    )
    def test_type_from_line(
        self, decoder: EventDecoder, line: str, data: str, expected: EventType
    ) -> None:
        event = decoder.decode(make_frame(line, data))

        assert event is not None
        assert event.type == expected
        assert event.type.value == line.strip()
