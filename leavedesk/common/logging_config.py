"""Process-wide logging setup (stdlib ``logging``)."""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "info") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if not root.handlers:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)
    root.setLevel(numeric_level)

    # Suppress verbose logs from some libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
