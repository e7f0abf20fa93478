"""Logging configuration for the veto server.

Console logging on the root logger. Calling setup_logging() again replaces
the handler instead of stacking a second one.
"""

import logging


def setup_logging(level: str | int = logging.INFO) -> None:
    """Configure a single console handler on the root logger.

    Args:
        level: Minimum level, as a name ("DEBUG") or a logging constant.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(console)

    # Access logs are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
