# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from gatehouse.auth.flow import AuthFlow
from gatehouse.auth.models import CurrentUser
from gatehouse.auth.passwords import configure_hasher
from gatehouse.auth.session import CookieDirective, SessionCookieCodec
from gatehouse.auth.tokens import VerificationTokenIssuer
from gatehouse.config import Settings, load_settings
from gatehouse.errors import GatehouseError, InvalidInput
from gatehouse.infra.credential_store import CredentialStore
from gatehouse.infra.document_store import open_document_store
from gatehouse.infra.session_store import SessionStore
from gatehouse.logging_utils import configure_logging
from gatehouse.permissions import current_user_optional, get_flow, load_user_from_request, require_user
from gatehouse.services.email_service import (
    EmailDispatcher,
    LoggingEmailDispatcher,
    SmtpEmailDispatcher,
    UnconfiguredEmailDispatcher,
    VerificationEmailRenderer,
)

logger = logging.getLogger(__name__)


def build_mailer(settings: Settings) -> EmailDispatcher:
    """SMTP when a host is set. Otherwise production fails every send, development logs it."""
    if not settings.smtp_configured:
        if settings.is_production:
            logger.error("GATEHOUSE_SMTP_HOST is not set: verification emails cannot be sent")
            return UnconfiguredEmailDispatcher()
        return LoggingEmailDispatcher()
    return SmtpEmailDispatcher(
        settings.smtp_host,
        settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_from,
        use_tls=settings.smtp_use_tls,
    )


def build_flow(settings: Settings, *, mailer: Optional[EmailDispatcher] = None) -> AuthFlow:
    """Wire the default collaborators. Called once per process."""
    configure_hasher(time_cost=settings.argon2_time_cost, memory_cost=settings.argon2_memory_cost)
    store = open_document_store(settings.store_backend, settings.store_path)
    return AuthFlow(
        credentials=CredentialStore(store),
        sessions=SessionStore(store),
        tokens=VerificationTokenIssuer(settings.verification_ttl),
        cookies=SessionCookieCodec(settings.cookie_name, secure=settings.secure_cookies),
        mailer=mailer or build_mailer(settings),
        emails=VerificationEmailRenderer(settings.site_url),
        session_ttl=settings.session_ttl,
    )


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        raise InvalidInput({"__root__": ["Expected a JSON object"]})
    return body


def _with_cookie(payload: Dict[str, Any], cookie: Optional[CookieDirective], status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(payload, status_code=status_code)
    if cookie is not None:
        resp.set_cookie(**cookie.as_cookie_kwargs())
    return resp


def create_app(flow: Optional[AuthFlow] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    flow = flow or build_flow(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await flow.sessions.purge_expired()
        except GatehouseError as e:
            logger.warning("Session purge skipped: %s", e)
        yield

    app = FastAPI(title="gatehouse", lifespan=lifespan)
    app.state.flow = flow
    app.state.settings = settings

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        try:
            request.state.user = await load_user_from_request(request)
        except GatehouseError as e:
            logger.error("Session lookup failed: %s", e)
            return JSONResponse(e.to_payload(), status_code=e.status_code)
        return await call_next(request)

    @app.exception_handler(GatehouseError)
    async def _gatehouse_error(request: Request, exc: GatehouseError):
        if exc.client_fault:
            logger.debug("%s %s -> %s", request.method, request.url.path, exc.code)
        else:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    # ------------------ Routes ------------------

    @app.post("/api/auth/register")
    async def register(request: Request):
        body = await _json_body(request)
        result = await get_flow(request).register(
            body.get("username"), body.get("email"), body.get("password")
        )
        return {"message": result.message}

    @app.post("/api/auth/verify-email")
    async def verify_email_post(request: Request):
        body = await _json_body(request)
        token = body.get("verifyToken") or body.get("token") or ""
        result = await get_flow(request).verify_email(str(token))
        return {"message": result.message}

    @app.get("/auth/verify-email/{token}")
    async def verify_email_link(request: Request, token: str):
        result = await get_flow(request).verify_email(token)
        return {"message": result.message}

    @app.post("/api/auth/login")
    async def login(request: Request):
        body = await _json_body(request)
        result = await get_flow(request).login(body.get("email"), body.get("password"))
        return _with_cookie({"message": result.message}, result.cookie)

    @app.get("/api/auth/profile")
    async def profile(user: Optional[CurrentUser] = Depends(current_user_optional)):
        if not user:
            return JSONResponse({"success": False, "message": "Not Signed In"}, status_code=401)
        return {"success": True, "username": user.username, "email": user.email}

    @app.post("/api/auth/sign-out")
    async def sign_out(request: Request):
        result = await get_flow(request).sign_out_cookies(request.cookies)
        return _with_cookie({"message": result.message}, result.cookie)

    @app.get("/login")
    async def login_page(request: Request, next: str = "/"):
        if getattr(request.state, "user", None):
            return {"message": "Already signed in", "next": next}
        return JSONResponse({"message": "Please sign in to continue", "next": next}, status_code=401)

    @app.get("/dashboard")
    async def dashboard(user: CurrentUser = Depends(require_user)):
        return {"message": f"Welcome, {user.username}", "email": user.email}

    return app
