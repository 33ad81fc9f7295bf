"""Run the lobby coordinator with uvicorn.

Usage: uv run python bin/run-lobby.py [--host HOST] [--port PORT] [--reload]

Configuration comes from LOBBY_* environment variables (see LobbyServerSettings).
"""

import argparse
import sys
from pathlib import Path

import uvicorn

BACKEND_DIR = Path(__file__).resolve().parent.parent / "backend"

# Add backend to path for imports
sys.path.insert(0, str(BACKEND_DIR))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the lobby coordinator")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8710)
    parser.add_argument("--reload", action="store_true", help="Restart on source changes")
    args = parser.parse_args()

    uvicorn.run(
        "lobby.server.app:get_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(BACKEND_DIR),
        log_config=None,
    )


if __name__ == "__main__":
    main()
