"""Logging configuration for WA Gateway."""

import logging
import sys
from typing import Iterable, List, Optional

GATEWAY_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
DEBUG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


class SecretMaskFilter(logging.Filter):
    """Replace configured secrets with ``***`` in rendered log messages."""

    def __init__(self, secrets: Iterable[Optional[str]] = ()):
        super().__init__()
        self.secrets: List[str] = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        masked = message
        for secret in self.secrets:
            masked = masked.replace(secret, "***")
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    debug: bool = False,
    secrets: Iterable[Optional[str]] = (),
) -> None:
    """
    Configure logging for the gateway process.

    Args:
        level: Log level name, ignored when ``debug`` is set
        debug: Verbose format with logger names and line numbers
        secrets: Static credentials (bridge token, reveal PIN) to mask in output
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SecretMaskFilter(secrets))

    logging.basicConfig(
        level=log_level,
        format=DEBUG_FORMAT if debug else GATEWAY_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )

    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(logging.DEBUG if debug else logging.WARNING)

    # Bridge traffic goes through httpx
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
