# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication core.

This package provides:
- Password hashing/verification (argon2)
- Verification tokens for email confirmation
- Session cookie directives
- Register/login payload schemas (pydantic)
- The register -> verify -> login -> sign-out flow
"""
