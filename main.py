"""
main.py: Server launcher and entry point.

Run this file to start the relief coordination API:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("RELIEF_HOST", "127.0.0.1")
PORT = int(os.getenv("RELIEF_PORT", "8000"))


def main() -> None:
    """Start the relief coordination API server."""
    print("=" * 60)
    print("  Shelter Relief Coordination")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("RELIEF_RELOAD", "false").lower() in {"1", "true", "yes", "on"},
        log_level="info",
    )


if __name__ == "__main__":
    main()
