import base64

import pytest

from rpcengine import AccessDenied, AuthenticationFailure
from rpcengine.access import (
    check_host,
    check_user,
    credentials_from_headers,
    decode_basic_credentials,
)


def _encode(text):
    return base64.b64encode(text.encode()).decode()


def test_check_host():
    check_host([], "10.1.1.1")
    check_host(["127.0.0.1", "::1"], "::1")

    with pytest.raises(AccessDenied):
        check_host(["127.0.0.1"], "10.1.1.1")
    with pytest.raises(AccessDenied):
        check_host(["127.0.0.1"], None)


def test_check_user():
    users = {"alice": "wonderland"}
    check_user({}, "", "")
    check_user(users, "alice", "wonderland")

    with pytest.raises(AuthenticationFailure):
        check_user(users, "alice", "wrong")
    with pytest.raises(AuthenticationFailure):
        check_user(users, "bob", "wonderland")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Basic " + _encode("alice:pw"), ("alice", "pw")),
        ("basic " + _encode("alice:pw"), ("alice", "pw")),
        (_encode("bot:a:b"), ("bot", "a:b")),
        (_encode("user:"), ("user", "")),
        (_encode("nocolon"), ("", "")),
        ("Basic !!!", ("", "")),
        ("", ("", "")),
        (None, ("", "")),
    ],
)
def test_decode_basic_credentials(value, expected):
    assert decode_basic_credentials(value) == expected


def test_credentials_from_headers():
    headers = {"AUTHORIZATION": "Basic " + _encode("a:b"), "X-Token": _encode("c:d")}

    assert credentials_from_headers(headers) == ("a", "b")
    assert credentials_from_headers(headers, "x-token") == ("c", "d")
    assert credentials_from_headers({}, None) == ("", "")
