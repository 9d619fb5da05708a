# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, Request

from gatehouse.auth.flow import AuthFlow
from gatehouse.auth.models import CurrentUser

LOGIN_PATH = "/login"


def get_flow(request: Request) -> AuthFlow:
    return request.app.state.flow


async def load_user_from_request(request: Request) -> Optional[CurrentUser]:
    return await get_flow(request).current_user(request.cookies)


async def current_user_optional(request: Request) -> Optional[CurrentUser]:
    # the auth middleware already resolved it, even when anonymous
    if hasattr(request.state, "user"):
        return request.state.user
    return await load_user_from_request(request)


async def require_user(request: Request) -> CurrentUser:
    u = await current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"{LOGIN_PATH}?next={quote(next_url, safe='/')}"
    raise HTTPException(status_code=303, headers={"Location": loc})
