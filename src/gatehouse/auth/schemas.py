# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Input schemas for register/login payloads.

Rejects malformed input before anything touches a store.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, ValidationError, field_validator

from gatehouse.errors import InvalidInput

USERNAME_MIN, USERNAME_MAX = 4, 16
PASSWORD_MIN, PASSWORD_MAX = 8, 24

M = TypeVar("M", bound=BaseModel)


def _check_password(v: str) -> str:
    if not (PASSWORD_MIN <= len(v) <= PASSWORD_MAX):
        raise ValueError(f"Password length must be within {PASSWORD_MIN}-{PASSWORD_MAX} characters")
    return v


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def _canon_email(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class RegisterData(_Payload):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def _check_username(cls, v: str) -> str:
        v = v.strip()
        if not (USERNAME_MIN <= len(v) <= USERNAME_MAX):
            raise ValueError(f"Username length must be within {USERNAME_MIN}-{USERNAME_MAX} characters")
        return v

    @field_validator("password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        return _check_password(v)


class LoginData(_Payload):
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def _check_password(cls, v: str) -> str:
        return _check_password(v)


def _field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__root__",)
        field = str(loc[0])
        msg = str(err.get("msg") or "Invalid value")
        # pydantic prefixes custom ValueError messages
        msg = msg.removeprefix("Value error, ")
        out.setdefault(field, []).append(msg)
    return out


def _parse(model: Type[M], payload: Mapping[str, Any]) -> M:
    try:
        return model.model_validate(dict(payload or {}))
    except ValidationError as e:
        raise InvalidInput(_field_errors(e)) from e


def parse_register(payload: Mapping[str, Any]) -> RegisterData:
    return _parse(RegisterData, payload)


def parse_login(payload: Mapping[str, Any]) -> LoginData:
    return _parse(LoginData, payload)
