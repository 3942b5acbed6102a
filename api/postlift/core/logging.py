import logging
import sys

from postlift.core.config import Settings


def configure_logging(config: Settings) -> None:
    """Route engine logs to stdout at the configured level."""
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("postlift").setLevel(level)
