"""Run the gallery backend with uvicorn: ``python -m messverse``."""

from __future__ import annotations

import logging

import uvicorn

from messverse.app import create_app
from messverse.config import get_settings


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app = create_app(settings)
    logging.getLogger(__name__).info("Listening on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
