"""Tests for JSON hub record framing."""

from __future__ import annotations

import base64
import json

import pytest

from wstelem.errors import HubHandshakeError
from wstelem.stream.decoder import FrameKind
from wstelem.stream.hub import (
    RECORD_SEPARATOR,
    handshake_request,
    parse_handshake_response,
    split_records,
    unwrap,
)

RS = RECORD_SEPARATOR


def _record(obj: object) -> str:
    return json.dumps(obj) + RS


class TestHandshake:
    def test_request(self) -> None:
        request = handshake_request()
        assert request.endswith(RS)
        assert json.loads(request[:-1]) == {"protocol": "json", "version": 1}

    def test_empty_response_accepted(self) -> None:
        assert parse_handshake_response("{}" + RS) == ""

    def test_pipelined_records_returned(self) -> None:
        rest = parse_handshake_response("{}" + RS + _record({"type": 6}))
        assert rest == _record({"type": 6})

    def test_bytes_response(self) -> None:
        assert parse_handshake_response(("{}" + RS).encode()) == ""

    def test_error_response(self) -> None:
        with pytest.raises(HubHandshakeError, match="unsupported protocol"):
            parse_handshake_response(_record({"error": "unsupported protocol"}))

    @pytest.mark.parametrize("response", ["{}", "not json" + RS, "[1]" + RS])
    def test_malformed_response(self, response: str) -> None:
        with pytest.raises(HubHandshakeError):
            parse_handshake_response(response)


class TestUnwrap:
    def test_split_records_drops_empty(self) -> None:
        assert split_records("a" + RS + RS + "b" + RS) == ["a", "b"]

    def test_string_invocation(self) -> None:
        batch = unwrap(_record({"type": 1, "target": "Message", "arguments": ["T:1,2,3"]}))
        assert batch.close is None
        assert len(batch.frames) == 1
        assert batch.frames[0].kind is FrameKind.TEXT
        assert batch.frames[0].payload == b"T:1,2,3"

    def test_multiple_arguments_and_records(self) -> None:
        message = _record({"type": 1, "target": "Message", "arguments": ["a=1", "b=2"]}) + _record(
            {"type": 1, "target": "Message", "arguments": ["c=3"]}
        )
        batch = unwrap(message)
        assert [f.payload for f in batch.frames] == [b"a=1", b"b=2", b"c=3"]

    def test_raw_binary_target(self) -> None:
        encoded = base64.b64encode(b"\x01\x02\xff").decode()
        batch = unwrap(_record({"type": 1, "target": "RawBinary", "arguments": [encoded]}))
        assert batch.frames[0].kind is FrameKind.BINARY
        assert batch.frames[0].payload == b"\x01\x02\xff"

    def test_raw_binary_not_base64_stays_text(self) -> None:
        batch = unwrap(_record({"type": 1, "target": "RawBinary", "arguments": ["not base64!"]}))
        assert batch.frames[0].kind is FrameKind.TEXT

    def test_non_string_argument_becomes_json_text(self) -> None:
        batch = unwrap(_record({"type": 1, "target": "Status", "arguments": [{"ok": True}]}))
        assert batch.frames[0].payload == b'{"ok":true}'

    def test_ping_ignored(self) -> None:
        assert unwrap(_record({"type": 6})).frames == []

    def test_close_record(self) -> None:
        message = (
            _record({"type": 1, "target": "Message", "arguments": ["x=1"]})
            + _record({"type": 7, "error": "server shutting down", "allowReconnect": True})
            + _record({"type": 1, "target": "Message", "arguments": ["after"]})
        )
        batch = unwrap(message)
        assert [f.payload for f in batch.frames] == [b"x=1"]
        assert batch.close is not None
        assert batch.close.reason == "server shutting down"
        assert batch.close.allow_reconnect

    def test_close_without_error(self) -> None:
        batch = unwrap(_record({"type": 7}))
        assert batch.close is not None
        assert batch.close.reason == ""

    def test_unparsable_record_degrades_to_text(self) -> None:
        batch = unwrap("plain text" + RS)
        assert batch.frames[0].kind is FrameKind.TEXT
        assert batch.frames[0].payload == b"plain text"

    def test_unknown_type_degrades_to_text(self) -> None:
        record = json.dumps({"type": 99})
        batch = unwrap(record + RS)
        assert batch.frames[0].payload == record.encode()

    def test_completion_records_ignored(self) -> None:
        assert unwrap(_record({"type": 3, "invocationId": "1"})).frames == []
