"""
Tests for the control message codec.

The wire format is the one contract shared with other implementations,
so these check exact bytes as well as tolerance of bad input.
"""
import json

import pytest

from pledge.codec import (
    Accept,
    Ping,
    Pong,
    Request,
    Reset,
    MAX_EPOCH_MS,
    Unrecognized,
    decode,
    encode,
)


class TestEncode:
    """Encoded payloads are compact JSON with a type tag."""

    def test_request_wire_format(self):
        assert encode(Request(expires_at_ms=1700000000000)) == b'{"type":"REQUEST","exp":1700000000000}'

    def test_accept_and_reset_wire_format(self):
        assert encode(Accept()) == b'{"type":"ACCEPT"}'
        assert encode(Reset()) == b'{"type":"RESET"}'

    def test_ping_pong_carry_timestamp(self):
        assert json.loads(encode(Ping(sent_at_ms=42))) == {"type": "PING", "ts": 42}
        assert json.loads(encode(Pong(sent_at_ms=43))) == {"type": "PONG", "ts": 43}

    def test_encode_rejects_non_messages(self):
        with pytest.raises(TypeError):
            encode(Unrecognized(b"x", "nope"))


class TestDecode:
    """Decoding well-formed payloads."""

    def test_decodes_own_encoding(self):
        for message in (Request(123), Accept(), Reset(), Ping(5), Pong(6)):
            assert decode(encode(message)) == message

    def test_extra_fields_are_ignored(self):
        assert decode(b'{"type":"ACCEPT","nonce":"abc"}') == Accept()

    def test_float_timestamp_is_truncated(self):
        assert decode(b'{"type":"REQUEST","exp":1000.9}') == Request(1000)

    def test_legacy_short_tag(self):
        """Older peers used "t" for the tag."""
        assert decode(b'{"t":"REQUEST","exp":99}') == Request(99)
        assert decode(b'{"t":"PING","ts":7}') == Ping(7)

    def test_type_tag_wins_over_legacy_tag(self):
        assert decode(b'{"type":"ACCEPT","t":"RESET"}') == Accept()

    def test_bare_reset_token(self):
        assert decode(b"RESET") == Reset()


class TestDecodeMalformed:
    """Anything unusable becomes Unrecognized, never an exception."""

    @pytest.mark.parametrize("payload", [
        b"{bad",
        b"",
        b"\xff\xfe\x00",
        b"[1, 2, 3]",
        b'"RESET"',
        b" RESET",
        b"reset",
        b"42",
    ])
    def test_unparseable_or_not_an_object(self, payload):
        assert isinstance(decode(payload), Unrecognized)

    @pytest.mark.parametrize("payload", [
        b'{"exp": 5}',
        b'{"type": 5}',
        b'{"type": null}',
        b'{"type": "HELLO"}',
    ])
    def test_missing_or_unknown_tag(self, payload):
        assert isinstance(decode(payload), Unrecognized)

    @pytest.mark.parametrize("payload", [
        b'{"type":"REQUEST"}',
        b'{"type":"REQUEST","exp":"1000"}',
        b'{"type":"REQUEST","exp":true}',
        b'{"type":"REQUEST","exp":null}',
        b'{"type":"REQUEST","exp":NaN}',
        b'{"type":"PING"}',
        b'{"type":"PONG","ts":[1]}',
    ])
    def test_wrong_or_missing_fields(self, payload):
        assert isinstance(decode(payload), Unrecognized)

    def test_unrecognized_keeps_raw_bytes(self):
        result = decode(b"{bad")
        assert result.raw == b"{bad"
        assert result.reason == "not json"

    @pytest.mark.parametrize("payload", [
        b"[" * 100_000,
        b'{"a":' * 50_000,
    ])
    def test_deeply_nested_json(self, payload):
        result = decode(payload)
        assert isinstance(result, Unrecognized)
        assert result.reason == "not json"


class TestDecodeTimestampRange:
    """Timestamps outside the representable instant range are rejected."""

    @pytest.mark.parametrize("payload", [
        b'{"type":"REQUEST","exp":' + b"9" * 400 + b"}",
        b'{"type":"REQUEST","exp":8640000000000001}',
        b'{"type":"REQUEST","exp":-8640000000000001}',
        b'{"type":"REQUEST","exp":1e300}',
        b'{"type":"REQUEST","exp":1e400}',
        b'{"type":"PING","ts":' + b"9" * 400 + b"}",
    ])
    def test_out_of_range(self, payload):
        assert isinstance(decode(payload), Unrecognized)

    def test_range_bounds_accepted(self):
        assert decode(b'{"type":"REQUEST","exp":8640000000000000}') == Request(expires_at_ms=MAX_EPOCH_MS)
        assert decode(b'{"type":"PONG","ts":-8640000000000000}') == Pong(sent_at_ms=-MAX_EPOCH_MS)
