# encoding: utf-8
from urllib.parse import unquote

import pytest

from tweetkit.errors import TwitterError
from tweetkit.util import (
    actually_bytes, deparam, deparam_url, is_oauth_serializable,
    percent_encode, random_string, snowflake_from_date, stringify_query)


def test_percent_encode_reserved_characters():
    assert "a%20b%21%2A%27%28%29~" == percent_encode("a b!*'()~")
    assert "Ladies%20%2B%20Gentlemen" == percent_encode("Ladies + Gentlemen")
    assert "AZaz09-._~" == percent_encode("AZaz09-._~")


def test_percent_encode_utf8():
    assert "%E2%98%83" == percent_encode("☃")
    assert "caf%C3%A9" == percent_encode("café")


def test_percent_encode_non_strings():
    assert "1234" == percent_encode(1234)
    assert "True" == percent_encode(True)


def test_actually_bytes():
    for inp in [b"asdf", "asdf", "asdfüü", 1234]:
        assert type(actually_bytes(inp)) == bytes
    assert b"\xc3\xbc" == actually_bytes("ü")


def test_deparam():
    assert {'a': '1', 'b': 'x y'} == deparam("a=1&b=x%20y")
    assert {'flag': ''} == deparam("flag")
    assert {'a': ['1', '2', '3'], 'b': '4'} == deparam("a=1&b=4&a=2&a=3")


def test_deparam_url():
    assert {} == deparam_url("https://api.twitter.com/1.1/statuses/update.json")
    assert {'include_entities': 'true'} == deparam_url(
        "https://api.twitter.com/1.1/statuses/update.json?include_entities=true")


def test_stringify_query():
    query = {'a': 1, 'b': None, 'c': True, 'd': False, 'e': 'x', 'f': [1, 'y']}
    assert {'a': '1', 'c': 'true', 'd': 'false', 'e': 'x', 'f': ['1', 'y']} \
        == stringify_query(query)
    assert {} == stringify_query(None)


def test_is_oauth_serializable():
    assert is_oauth_serializable("text")
    assert is_oauth_serializable(12)
    assert not is_oauth_serializable(b"binary")
    assert not is_oauth_serializable(bytearray(b"binary"))
    assert not is_oauth_serializable(memoryview(b"binary"))

    class FileLike(object):
        def read(self):
            return b""
    assert not is_oauth_serializable(FileLike())


def test_random_string():
    value = random_string(32)
    assert 32 == len(value)
    assert value.isalnum()
    assert set(random_string(50, "ab")) <= set("ab")


def test_snowflake_from_date():
    # 2010-11-04T01:42:54.657Z is the first instant of the id space
    assert "0" == snowflake_from_date("2010-11-04T01:42:54.657Z")
    assert str(1000 << 22) == snowflake_from_date("2010-11-04T01:42:55.657Z")
    assert str(1000 << 22) == snowflake_from_date("2010-11-04T01:42:55.657+00:00")


def test_snowflake_from_date_rejects_garbage():
    with pytest.raises(TwitterError):
        snowflake_from_date("yesterday")
    with pytest.raises(TwitterError):
        snowflake_from_date(None)


def test_percent_encode_round_trip():
    for value in ("a b!*'()~", "Hello Ladies + Gentlemen", "☃ & ="):
        assert value == unquote(percent_encode(value))
