# fantasy_market/core/logging_config.py
import logging
import sys

_CONFIGURED = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the service once.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    _CONFIGURED = True
