"""Tests for frame decoding: telemetry lines, key/value lines, binary previews."""

from __future__ import annotations

import base64
import math
from datetime import UTC, datetime

import pytest

from wstelem.stream.decoder import (
    INVALID_UTF8,
    BinaryPreview,
    Frame,
    FrameDecoder,
    FrameKind,
    KeyValueSet,
    RawText,
    TelemetrySample,
    binary_preview,
    parse_float,
    parse_key_values,
    parse_telemetry,
    safe_utf8,
)


def _text(line: str) -> Frame:
    return Frame.from_message(line)


@pytest.fixture
def decoder() -> FrameDecoder:
    return FrameDecoder()


class TestFrame:
    def test_from_text_message(self) -> None:
        frame = Frame.from_message("T:1,2,3")
        assert frame.kind is FrameKind.TEXT
        assert frame.payload == b"T:1,2,3"

    def test_from_binary_message(self) -> None:
        frame = Frame.from_message(b"\x00\x01")
        assert frame.kind is FrameKind.BINARY
        assert frame.payload == b"\x00\x01"


class TestParseFloat:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1.5", 1.5),
            ("-0.01", -0.01),
            ("+2", 2.0),
            (" 6.02 ", 6.02),
            (".5", 0.5),
            ("3.", 3.0),
            ("1e3", 1000.0),
            ("-2.5E-2", -0.025),
        ],
    )
    def test_valid(self, text: str, expected: float) -> None:
        assert parse_float(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "bad", "1,5", "1_000", "inf", "-inf", "infinite", "1.2.3", "٣"])
    def test_invalid(self, text: str) -> None:
        assert parse_float(text) is None

    @pytest.mark.parametrize("text", ["Infinity", "+infinity", " INFINITY "])
    def test_positive_infinity(self, text: str) -> None:
        assert parse_float(text) == math.inf

    def test_negative_infinity(self) -> None:
        assert parse_float("-Infinity") == -math.inf

    @pytest.mark.parametrize("text", ["NaN", "nan", "-NaN"])
    def test_nan(self, text: str) -> None:
        value = parse_float(text)
        assert value is not None
        assert math.isnan(value)


class TestParseTelemetry:
    def test_full_line(self) -> None:
        sample = parse_telemetry("T:-0.01,0.36,6.02,2.00,2.00")
        assert sample is not None
        assert sample.roll == pytest.approx(-0.01)
        assert sample.pitch == pytest.approx(0.36)
        assert sample.yaw == pytest.approx(6.02)
        assert sample.custom1 == pytest.approx(2.0)
        assert sample.custom2 == pytest.approx(2.0)

    def test_partial_failure(self) -> None:
        sample = parse_telemetry("T:1.5,bad,3.0")
        assert sample is not None
        assert sample.values() == {
            "roll": 1.5,
            "pitch": None,
            "yaw": 3.0,
            "custom1": None,
            "custom2": None,
        }

    def test_prefix_case_insensitive_and_trimmed(self) -> None:
        sample = parse_telemetry("  t: 1 , 2 , 3  ")
        assert sample is not None
        assert (sample.roll, sample.pitch, sample.yaw) == (1.0, 2.0, 3.0)

    def test_extra_fields_ignored(self) -> None:
        sample = parse_telemetry("T:1,2,3,4,5,6,7")
        assert sample is not None
        assert sample.custom2 == 5.0

    def test_empty_fields_are_none(self) -> None:
        sample = parse_telemetry("T:1,,3")
        assert sample is not None
        assert sample.pitch is None

    def test_non_finite_fields(self) -> None:
        sample = parse_telemetry("T:NaN,-Infinity,Infinity")
        assert sample is not None
        assert sample.roll is not None
        assert math.isnan(sample.roll)
        assert (sample.pitch, sample.yaw) == (-math.inf, math.inf)

    @pytest.mark.parametrize("line", ["T:1,2", "T:", "T:1", "X:1,2,3", "roll=1"])
    def test_not_telemetry(self, line: str) -> None:
        assert parse_telemetry(line) is None

    def test_keeps_raw_line_and_timestamp(self) -> None:
        now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        line = "T:1,2,3\n"
        sample = parse_telemetry(line, now=now)
        assert sample is not None
        assert sample.raw_line == line
        assert sample.captured_at == now

    def test_default_timestamp_is_utc_now(self) -> None:
        before = datetime.now(UTC)
        sample = parse_telemetry("T:1,2,3")
        after = datetime.now(UTC)
        assert sample is not None
        assert before <= sample.captured_at <= after
        assert sample.captured_at.tzinfo is UTC


class TestParseKeyValues:
    def test_repeated_keys_concatenate(self) -> None:
        kv = parse_key_values("foo=1 bar=2 foo=3")
        assert kv.pairs == {"foo": "1,3", "bar": "2"}

    def test_case_insensitive_names(self) -> None:
        kv = parse_key_values("Speed=1 SPEED=2")
        assert kv.pairs == {"Speed": "1,2"}
        assert kv["speed"] == "1,2"
        assert "SPEED" in kv
        assert kv.get("sPeEd") == "1,2"

    def test_spaces_around_equals(self) -> None:
        kv = parse_key_values("angle = 1.25 pwm= 37")
        assert kv.pairs == {"angle": "1.25", "pwm": "37"}

    def test_no_pairs(self) -> None:
        kv = parse_key_values("hello world")
        assert len(kv) == 0
        assert not kv

    def test_mapping_helpers(self) -> None:
        kv = parse_key_values("a=1 b=2")
        assert list(kv) == ["a", "b"]
        assert kv.items() == [("a", "1"), ("b", "2")]
        assert kv.get("missing") is None
        assert kv.get("missing", "x") == "x"
        assert 42 not in kv
        with pytest.raises(KeyError):
            kv["missing"]


class TestBinaryPreview:
    def test_short_payload(self) -> None:
        preview = binary_preview(b"\x01\xab\xff")
        assert preview.length == 3
        assert preview.hex_preview == "01ABFF"
        assert preview.base64_preview == base64.b64encode(b"\x01\xab\xff").decode()

    def test_exactly_128_bytes_has_no_ellipsis(self) -> None:
        preview = binary_preview(bytes(128))
        assert preview.hex_preview == "00" * 128

    def test_long_payload_truncated(self) -> None:
        payload = bytes(range(256)) * 2
        preview = binary_preview(payload)
        assert preview.length == 512
        assert preview.hex_preview == payload[:128].hex().upper() + "..."
        assert len(preview.base64_preview) == 256
        assert preview.base64_preview == base64.b64encode(payload).decode()[:256]


class TestSafeUtf8:
    def test_valid(self) -> None:
        assert safe_utf8("héllo".encode()) == "héllo"

    def test_invalid(self) -> None:
        assert safe_utf8(b"\xff\xfe") == INVALID_UTF8


class TestFrameDecoder:
    def test_telemetry(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(_text("T:-0.01,0.36,6.02,2.00,2.00"))
        assert isinstance(event, TelemetrySample)
        assert event.raw_line == "T:-0.01,0.36,6.02,2.00,2.00"

    def test_short_telemetry_falls_through_to_key_values(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(_text("T:1,2 mode=run"))
        assert isinstance(event, KeyValueSet)
        assert event.pairs == {"mode": "run"}

    def test_short_telemetry_without_pairs_is_raw(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(_text("T:1,2"))
        assert event == RawText("T:1,2")

    def test_key_values(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(_text("foo=1 bar=2 foo=3"))
        assert isinstance(event, KeyValueSet)
        assert event.pairs == {"foo": "1,3", "bar": "2"}
        assert event.raw_line == "foo=1 bar=2 foo=3"

    def test_raw_text_equals_input(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(_text("motor controller ready"))
        assert event == RawText("motor controller ready")

    def test_invalid_utf8_text_frame(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(Frame(FrameKind.TEXT, b"\xc3\x28 bad"))
        assert event == RawText(INVALID_UTF8)

    def test_binary(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(Frame(FrameKind.BINARY, b"\xde\xad\xbe\xef"))
        assert isinstance(event, BinaryPreview)
        assert event.hex_preview == "DEADBEEF"

    def test_binary_that_looks_like_telemetry_stays_binary(self, decoder: FrameDecoder) -> None:
        event = decoder.decode(Frame(FrameKind.BINARY, b"T:1,2,3"))
        assert isinstance(event, BinaryPreview)

    def test_empty_text(self, decoder: FrameDecoder) -> None:
        assert decoder.decode(_text("")) == RawText("")
