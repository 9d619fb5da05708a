# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Logging utilities.

Primary goals:
- Never leak passwords, password hashes, verification tokens or session ids.
- One place to set up handlers and levels for the service.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Union

# LogRecord attribute (set via ``extra``) that keeps verification links readable.
# Only the development email dispatcher sets it.
KEEP_VERIFY_LINK = "keep_verify_link"


class RedactSecretsFilter(logging.Filter):
    """
    Best-effort redaction for secrets in log messages.

    Covers query/body style ``key=value`` pairs, JSON-ish ``"key": "value"``
    pairs, ``session_id=...`` cookie strings and encoded argon2 hashes.
    """

    _keys = r"password|passwd|token|verifyToken|verify_token|session_id|secret"
    _query_param_re = re.compile(rf"(?i)\b({_keys})=([^&;\s]+)")
    _json_kv_re = re.compile(
        rf"(?i)(\"?({_keys})\"?\s*:\s*)(\"?)[^\"\s,}}]+(\3)"
    )
    _argon2_re = re.compile(r"\$argon2(?:id|i|d)\$[^\s\"']+")
    _verify_link_re = re.compile(r"(/verify-email/)[A-Za-z0-9%._\-]+")

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (Filter.filter)
        try:
            msg = record.getMessage()
        except Exception:
            return True

        redacted = self._argon2_re.sub("$argon2-REDACTED", msg)
        redacted = self._query_param_re.sub(lambda m: f"{m.group(1)}=REDACTED", redacted)
        redacted = self._json_kv_re.sub(
            lambda m: f"{m.group(1)}{m.group(3)}REDACTED{m.group(4)}", redacted
        )
        if not getattr(record, KEEP_VERIFY_LINK, False):
            redacted = self._verify_link_re.sub(r"\1REDACTED", redacted)

        if redacted != msg:
            # Replace the fully formatted message to avoid re-formatting with args.
            record.msg = redacted
            record.args = ()
        return True


_FILTER_NAME = "gatehouse_redact_secrets"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _has_filter(filters: Iterable[Union[logging.Filter, object]], name: str) -> bool:
    return any(getattr(f, "name", None) == name for f in filters)


def install_log_safety() -> None:
    """Attach the redaction filter to the root logger and every known handler."""
    redact_filter = RedactSecretsFilter(_FILTER_NAME)

    root = logging.getLogger()
    if not _has_filter(root.filters, _FILTER_NAME):
        root.addFilter(redact_filter)
    for handler in root.handlers:
        if not _has_filter(handler.filters, _FILTER_NAME):
            handler.addFilter(redact_filter)

    # Also attach to existing non-root handlers (e.g., uvicorn).
    for obj in logging.Logger.manager.loggerDict.values():
        if isinstance(obj, logging.Logger):
            for handler in obj.handlers:
                if not _has_filter(handler.filters, _FILTER_NAME):
                    handler.addFilter(redact_filter)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=_FORMAT)
    logging.getLogger("gatehouse").setLevel(level.upper())
    install_log_safety()
