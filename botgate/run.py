"""Programmatic uvicorn entry point for botgate.

Reads host and port from the loaded config (127.0.0.1:8080 by default).

Usage:
    python -m botgate.run
    botgate                    # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from botgate.config import load_config

# Maximum number of concurrent connections accepted by uvicorn.
# Each visitor fans out to five provider lookups on the shared client pool.
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the botgate server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()

    uvicorn.run(
        "botgate.main:app",
        host=config.server.host,
        port=config.server.port,
        proxy_headers=False,  # request.client must stay the raw peer; the resolver reads forwarding headers
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
