"""Tests for the inline-button payload codec."""

import pytest

from otbot.callback_token import (
    FLAG_OFFTOPIC,
    CallbackToken,
    DecodeError,
    TokenTooLongError,
    decode,
    encode,
    flag_offtopic,
)


class TestEncode:
    def test_wire_format(self):
        assert encode(flag_offtopic(4242)) == "1:ot:4242"

    def test_deterministic(self):
        assert encode(flag_offtopic(7)) == encode(CallbackToken(FLAG_OFFTOPIC, 7))

    def test_round_trip(self):
        for message_id in (0, 1, 4242, 2**53, -5):
            token = flag_offtopic(message_id)
            assert decode(encode(token)) == token

    def test_reencode_is_identity(self):
        data = encode(flag_offtopic(99))
        assert encode(decode(data)) == data

    def test_oversize_is_rejected(self):
        with pytest.raises(TokenTooLongError):
            encode(flag_offtopic(123456789), max_bytes=8)

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            encode(CallbackToken("ban", 1))


class TestDecode:
    @pytest.mark.parametrize(
        "data",
        [
            "",
            "menu:root",
            "1:ot",
            "1:ot:1:2",
            "2:ot:1",
            "1:ban:1",
            "1:ot:abc",
            "1:ot:",
            "1:ot:+5",
            "1:ot:007",
            "1:ot:-0",
            "1:ot: 5",
            "1:ot:1_000",
        ],
    )
    def test_rejects_foreign_data(self, data):
        with pytest.raises(DecodeError):
            decode(data)

    def test_decode_error_is_value_error(self):
        assert issubclass(DecodeError, ValueError)
