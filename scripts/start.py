#!/usr/bin/env python3
"""
Production startup script.

Validates PORT, then starts gunicorn (replaces this process via os.execvp).

Usage:
    python scripts/start.py

os.execvp hands PID 1 and signal handling to gunicorn. Schema changes are not
applied here; run scripts/add_tenant_columns.py (or the SQL in sql/) by hand.
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    port = os.environ.get("PORT", "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        port = "8080"

    try:
        port_int = int(port)
        if port_int < 1 or port_int > 65535:
            raise ValueError("Port out of range")
    except ValueError:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)

    workers = os.environ.get("WEB_CONCURRENCY", "").strip() or "2"

    print("=== Starting gunicorn ===", flush=True)
    print(f"Gunicorn binding to 0.0.0.0:{port} ({workers} workers)", flush=True)
    print("Health check endpoints ready at /healthz and /api/health", flush=True)

    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", workers,
            "--timeout", "60",
            "--preload",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
