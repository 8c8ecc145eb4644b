"""Structured logging for hosts embedding xrpl_wallet.

The library itself only logs through module loggers; `setup_logging()` is for
the host application (or a debugging session) to call once at start-up.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

from .config import Settings

# Hash of the transaction the current task is driving; set by the controller.
tx_hash_var: ContextVar[str] = ContextVar("tx_hash", default="<not-set>")


class TxHashFilter(logging.Filter):
    """Injects the current transaction hash into every log record."""

    def filter(self, record):
        record.tx_hash = tx_hash_var.get()
        return True


def setup_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Configure the root logger for JSON output on stdout.

    `level` defaults to Settings().log_level (LOG_LEVEL in the environment).
    Calling it again replaces the handler instead of adding a second one.
    """
    if level is None:
        level = Settings.from_env().log_level

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(tx_hash)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger",
        },
    )
    handler.setFormatter(formatter)
    handler.addFilter(TxHashFilter())
    root_logger.addHandler(handler)
    return root_logger


__all__ = ["tx_hash_var", "TxHashFilter", "setup_logging"]
