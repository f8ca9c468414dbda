"""Root logger configuration."""
import logging

from core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure the root logger once at application start.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL setting.
    """
    level_name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=level_name, format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
