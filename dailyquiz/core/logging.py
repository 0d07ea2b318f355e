import logging

from dailyquiz.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once; uvicorn keeps its own handlers."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    # httpx logs every request at INFO, too noisy for audio streaming
    logging.getLogger("httpx").setLevel(logging.WARNING)
