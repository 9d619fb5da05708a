# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy for the authentication flows.

Every failure a flow can end in is a ``GatehouseError``. ``client_fault``
separates problems the caller can fix (bad input, wrong credentials,
invalid/expired tokens) from server faults (store down, email not sent).
An anonymous session is not an error: ``AuthFlow.check_session`` returns
``None``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GatehouseError(Exception):
    code = "Error"
    message = "Unexpected error"
    status_code = 500
    client_fault = False

    def __init__(self, message: Optional[str] = None) -> None:
        if message:
            self.message = message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


# --- client-fault ---


class InvalidInput(GatehouseError):
    code = "InvalidInput"
    message = "Invalid input"
    status_code = 400
    client_fault = True

    def __init__(self, field_errors: Dict[str, List[str]], message: Optional[str] = None) -> None:
        self.field_errors = dict(field_errors)
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        out = super().to_payload()
        out["fields"] = self.field_errors
        return out


class AlreadyExists(GatehouseError):
    code = "AlreadyExists"
    message = "User exists already"
    status_code = 400
    client_fault = True


class InvalidCredentials(GatehouseError):
    """Unknown verified user and wrong password look the same from outside.

    ``reason`` is for logs only and never goes into the payload.
    """

    code = "InvalidCredentials"
    message = "Invalid email or password"
    status_code = 401
    client_fault = True

    UNKNOWN_USER = "unknown_user"
    WRONG_PASSWORD = "wrong_password"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__()

    @property
    def internal_code(self) -> str:
        return "WrongPassword" if self.reason == self.WRONG_PASSWORD else "UnknownUser"


class TokenNotFound(GatehouseError):
    code = "TokenNotFound"
    message = "Token not found"
    status_code = 400
    client_fault = True


class TokenExpired(GatehouseError):
    code = "TokenExpired"
    message = "Verification link has expired, please register again"
    status_code = 400
    client_fault = True


# --- server-fault ---


class VerificationFailed(GatehouseError):
    code = "VerificationFailed"
    message = "Verification failed"
    status_code = 500


class DispatchFailure(GatehouseError):
    code = "DispatchFailure"
    status_code = 502

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to send email: {reason}")


class StoreUnavailable(GatehouseError):
    code = "StoreUnavailable"
    message = "Storage unavailable"
    status_code = 503


# --- store-level ---


class IdentityNotFound(GatehouseError, LookupError):
    code = "NotFound"
    message = "Identity not found"
    status_code = 404
