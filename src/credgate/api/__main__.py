"""
credgate.api.__main__

Entrypoint for running the FastAPI application via `python -m credgate.api`.

Responsibilities:
- Load settings.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from credgate.api.app import create_app
from credgate.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()


# --- Module Notes -----------------------------------------------------------
# Missing configuration raises `ConfigurationMissing` from `create_app`, so the
# process exits before uvicorn binds the port.
