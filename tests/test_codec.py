"""Tests for HttpQ request encoding and response decoding."""

import pytest

from httpq.codec import COMMANDS, ResponseType, decode, encode
from httpq.errors import EndpointUnavailableError, ProtocolDecodeError

BASE_URL = "http://winamp.local:4800"


class TestEncode:
    """Tests for URL building."""

    def test_password_only(self):
        url = encode("getvolume", {}, "secret", BASE_URL)
        assert url == "http://winamp.local:4800/getvolume?p=secret"

    def test_integer_param(self):
        url = encode("setvolume", {"level": 120}, "secret", BASE_URL)
        assert url == "http://winamp.local:4800/setvolume?p=secret&level=120"

    def test_booleans_as_digits(self):
        assert encode("repeat", {"enable": True}, "secret", BASE_URL).endswith("&enable=1")
        assert encode("shuffle", {"enable": False}, "secret", BASE_URL).endswith("&enable=0")

    def test_none_params_are_omitted(self):
        url = encode("getplaylistfile", {"index": None}, "secret", BASE_URL)
        assert url == "http://winamp.local:4800/getplaylistfile?p=secret"

    def test_zero_is_not_omitted(self):
        url = encode("getplaylistfile", {"index": 0}, "secret", BASE_URL)
        assert url.endswith("&index=0")

    def test_no_password(self):
        assert encode("play", {}, "", BASE_URL) == "http://winamp.local:4800/play"

    def test_delimiter_is_escaped(self):
        url = encode("getplaylisttitlelist", {"delim": ";"}, "secret", BASE_URL)
        assert url.endswith("?p=secret&delim=%3B")

    def test_trailing_slash_in_base_url(self):
        assert encode("play", {}, "", BASE_URL + "/") == "http://winamp.local:4800/play"

    def test_is_deterministic(self):
        params = {"tags": "t,a", "delim": ";", "index": 3}
        assert encode("getid3tag", params, "x", BASE_URL) == encode("getid3tag", params, "x", BASE_URL)

    def test_unknown_command(self):
        with pytest.raises(ValueError):
            encode("restart", {}, "secret", BASE_URL)


class TestDecode:
    """Tests for response parsing."""

    def test_number_is_trimmed(self):
        assert decode("getvolume", "  200\r\n") == 200

    def test_negative_number(self):
        # getoutputtime answers -1 while stopped
        assert decode("getoutputtime", "-1") == -1

    def test_unparsable_number(self):
        with pytest.raises(ProtocolDecodeError):
            decode("getvolume", "loud")

    def test_empty_number(self):
        with pytest.raises(ProtocolDecodeError):
            decode("getlistlength", "")

    def test_empty_string_response(self):
        assert decode("getcurrenttitle", "  \n") == ""

    def test_string_response(self):
        assert decode("getcurrenttitle", "Daft Punk - One More Time\n") == "Daft Punk - One More Time"

    def test_boolean_response(self):
        assert decode("play", "1") is True
        assert decode("hasid3tag", "0") is False

    def test_invalid_boolean(self):
        with pytest.raises(ProtocolDecodeError):
            decode("repeat_status", "2")

    def test_version(self):
        assert decode("getversion", "1.0\n") == "1.0"

    def test_version_zero_means_unavailable(self):
        with pytest.raises(EndpointUnavailableError):
            decode("getversion", "0")

    def test_unavailable_is_a_decode_error(self):
        assert issubclass(EndpointUnavailableError, ProtocolDecodeError)

    def test_play_status_is_numeric(self):
        assert COMMANDS["isplaying"] is ResponseType.NUMBER
        assert decode("isplaying", "3") == 3
