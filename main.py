import logging

import uvicorn

from taskboard.config import get_settings
from taskboard.utils import configure_logging

logger = logging.getLogger("taskboard")


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Serving on http://%s:%s", settings.host, settings.port)
    uvicorn.run(
        "taskboard.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
