"""Run the share service with uvicorn: ``python -m buildshare``."""

from __future__ import annotations

import os

import uvicorn

from buildshare.app import ShareSettings, create_app
from buildshare.observability.logging import configure_logging


def main() -> None:
    settings = ShareSettings.from_env()
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    uvicorn.run(
        create_app(settings),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
