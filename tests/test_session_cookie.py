from datetime import timedelta

import pytest

from gatehouse.auth.session import SessionCookieCodec


def test_encode_mirrors_session_expiry(clock):
    codec = SessionCookieCodec()
    expires = clock.now + timedelta(hours=12)

    cookie = codec.encode("abc", expires)

    assert cookie.name == "session_id"
    assert cookie.value == "abc"
    assert cookie.expires == expires
    assert cookie.http_only
    assert cookie.path == "/"
    assert cookie.same_site == "lax"
    assert not cookie.secure
    assert not cookie.is_expired


def test_secure_flag_follows_codec():
    assert SessionCookieCodec(secure=True).encode_expired().secure


def test_encode_expired_drops_value():
    cookie = SessionCookieCodec("sid").encode_expired()

    assert cookie.name == "sid"
    assert cookie.value == ""
    assert cookie.is_expired
    kwargs = cookie.as_cookie_kwargs()
    assert kwargs["key"] == "sid"
    assert kwargs["httponly"] is True
    assert kwargs["samesite"] == "lax"


def test_decode():
    codec = SessionCookieCodec()

    assert codec.decode({"session_id": "abc"}) == "abc"
    assert codec.decode({"session_id": "  "}) is None
    assert codec.decode({"other": "abc"}) is None
    assert codec.decode({}) is None
    assert codec.decode(None) is None


def test_cookie_name_required():
    with pytest.raises(ValueError):
        SessionCookieCodec("")
