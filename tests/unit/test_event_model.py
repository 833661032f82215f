"""Tests for the Event model."""

from __future__ import annotations

import json

import pytest
from pydantic import BaseModel, ValidationError

from nestapi.errors import StreamDecodeError, StreamIOError
from nestapi.protocol.events import TERMINAL_EVENTS, Event, EventType


class Thermostat(BaseModel):
    target_temperature_c: float
    hvac_mode: str


class TestTerminalEvents:
    @pytest.mark.parametrize("event_type", list(EventType))
    def test_terminal_set(self, event_type: EventType) -> None:
        event = Event(type=event_type)
        assert event.is_terminal() == (event_type in TERMINAL_EVENTS)

    def test_data_events_are_not_terminal(self) -> None:
        assert not Event.put("/", 1).is_terminal()
        assert not Event.patch("/", 1).is_terminal()

    def test_server_closures_are_terminal(self) -> None:
        assert Event.cancel().is_terminal()
        assert Event.auth_revoked("expired").is_terminal()


class TestValue:
    def test_value_into_model(self) -> None:
        raw = json.dumps({"path": "/t1", "data": {"target_temperature_c": 21.5, "hvac_mode": "heat"}})
        event = Event.put("/t1", json.loads(raw)["data"], raw_data=raw)

        thermostat = event.value(Thermostat)

        assert thermostat == Thermostat(target_temperature_c=21.5, hvac_mode="heat")

    def test_value_into_mapping(self) -> None:
        raw = '{"path": "/", "data": {"a": 1, "b": 2}}'
        event = Event.patch("/", {"a": 1, "b": 2}, raw_data=raw)

        assert event.value(dict[str, int]) == {"a": 1, "b": 2}

    def test_value_without_raw_uses_data(self) -> None:
        assert Event.put("/", [1, 2]).value(list[int]) == [1, 2]

    def test_value_mismatch_raises(self) -> None:
        event = Event.put("/", "not a thermostat", raw_data='{"path":"/","data":"not a thermostat"}')

        with pytest.raises(ValidationError):
            event.value(Thermostat)

    def test_auth_revoked_value_is_raw_string(self) -> None:
        assert Event.auth_revoked("token expired").value(str) == "token expired"


class TestStreamError:
    def test_carries_message_and_kind(self) -> None:
        event = Event.stream_error(StreamDecodeError("Unrecognized event type: 'delete'"))

        assert event.type == EventType.STREAM_ERROR
        assert event.is_error()
        assert event.is_terminal()
        assert event.error == "Unrecognized event type: 'delete'"
        assert event.error_kind == "StreamDecodeError"
        assert event.path is None

    def test_empty_message_falls_back_to_kind(self) -> None:
        event = Event.stream_error(StreamIOError())
        assert event.error == "StreamIOError"

    def test_json_uses_wire_names(self) -> None:
        event = Event.stream_error(StreamIOError("stream ended"))

        dumped = json.loads(event.model_dump_json(exclude_none=True))

        assert dumped["type"] == "event_error"
        assert dumped["error_kind"] == "StreamIOError"
        assert "path" not in dumped
