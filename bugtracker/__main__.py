import logging

import uvicorn

from bugtracker.config import Settings
from bugtracker.logging_config import setup_logging


def main():
    settings = Settings.from_env()
    setup_logging(logging.getLevelName(settings.log_level))
    uvicorn.run(
        "bugtracker.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
