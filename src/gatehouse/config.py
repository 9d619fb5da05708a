# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Runtime settings.

Resolution order: built-in defaults, then an optional YAML file
(``GATEHOUSE_CONFIG``), then ``GATEHOUSE_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

# Anchor the default store to the project root, not the current working directory.
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_STORE_PATH = str(BASE_DIR / "data" / "gatehouse.yml")

_TRUE = {"1", "true", "yes", "y", "on"}


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v or "").strip().lower() in _TRUE


def _as_optional_bool(v: Any) -> Optional[bool]:
    # empty means unset
    if isinstance(v, str) and not v.strip():
        return None
    return _as_bool(v)


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    site_url: str = "http://localhost:8000"
    cookie_name: str = "session_id"
    # None -> secure only in production
    cookie_secure: Optional[bool] = None
    session_ttl_hours: float = 12
    verification_ttl_minutes: float = 60
    store_backend: str = "yaml"
    store_path: str = DEFAULT_STORE_PATH
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = field(default="", repr=False)
    smtp_from: str = ""
    smtp_use_tls: bool = True
    argon2_time_cost: int = 2
    argon2_memory_cost: int = 19456
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() in {"production", "prod"}

    @property
    def secure_cookies(self) -> bool:
        if self.cookie_secure is None:
            return self.is_production
        return self.cookie_secure

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(hours=self.session_ttl_hours)

    @property
    def verification_ttl(self) -> timedelta:
        return timedelta(minutes=self.verification_ttl_minutes)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host.strip())


_CASTS = {
    "cookie_secure": _as_optional_bool,
    "session_ttl_hours": float,
    "verification_ttl_minutes": float,
    "smtp_port": int,
    "smtp_use_tls": _as_bool,
    "argon2_time_cost": int,
    "argon2_memory_cost": int,
}


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(Settings)}
    out: Dict[str, Any] = {}
    for key, raw in values.items():
        k = str(key).strip().lower()
        if k not in known:
            continue
        cast = _CASTS.get(k)
        out[k] = cast(raw) if (cast and raw is not None) else raw
    return out


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return raw


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    prefix = "GATEHOUSE_"
    out: Dict[str, Any] = {}
    for key, value in environ.items():
        if key.startswith(prefix) and key != "GATEHOUSE_CONFIG":
            out[key[len(prefix):].lower()] = value
    # SITE_URL is what the verification links have always been built from.
    if "site_url" not in out and environ.get("SITE_URL"):
        out["site_url"] = environ["SITE_URL"]
    return out


def load_settings(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    env = os.environ if environ is None else environ
    if path is None and env.get("GATEHOUSE_CONFIG"):
        path = Path(env["GATEHOUSE_CONFIG"])

    settings = Settings()
    if path is not None:
        settings = replace(settings, **_coerce(_load_yaml(Path(path))))
    return replace(settings, **_coerce(_from_env(env)))
