import pytest

from gatehouse.auth.schemas import parse_login, parse_register
from gatehouse.errors import InvalidInput


def test_register_valid_payload_is_normalised():
    data = parse_register({"username": " alice ", "email": " Alice@Example.COM ", "password": "password1"})

    assert data.username == "alice"
    assert data.email == "alice@example.com"
    assert data.password == "password1"


@pytest.mark.parametrize(
    "field,value",
    [
        ("username", "abc"),
        ("username", "a" * 17),
        ("password", "1234567"),
        ("password", "x" * 25),
        ("email", "nope"),
        ("email", None),
    ],
)
def test_register_field_errors(field, value):
    payload = {"username": "alice", "email": "a@x.com", "password": "password1", field: value}

    with pytest.raises(InvalidInput) as exc:
        parse_register(payload)

    assert list(exc.value.field_errors) == [field]
    assert exc.value.client_fault
    assert exc.value.status_code == 400


def test_length_messages_are_readable():
    with pytest.raises(InvalidInput) as exc:
        parse_register({"username": "al", "email": "a@x.com", "password": "password1"})

    assert exc.value.field_errors["username"] == ["Username length must be within 4-16 characters"]


def test_bounds_are_inclusive():
    parse_register({"username": "abcd", "email": "a@x.com", "password": "x" * 8})
    parse_register({"username": "a" * 16, "email": "a@x.com", "password": "x" * 24})


def test_login_requires_both_fields():
    with pytest.raises(InvalidInput) as exc:
        parse_login({})

    assert set(exc.value.field_errors) == {"email", "password"}
    payload = exc.value.to_payload()
    assert payload["code"] == "InvalidInput"
    assert set(payload["fields"]) == {"email", "password"}
