# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Gatehouse entrypoint.

Run with:
  python -m gatehouse
"""

import os
import uvicorn


def main() -> None:
    host = os.getenv("GATEHOUSE_HOST", "127.0.0.1")
    port = int(os.getenv("GATEHOUSE_PORT", "8000"))
    reload = os.getenv("GATEHOUSE_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("gatehouse.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
