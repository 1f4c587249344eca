"""ledger.core.log

Module loggers emit snake_case event keys; context travels in ``extra``.
"""

from __future__ import annotations

import logging

from pythonjsonlogger.json import JsonFormatter

from ledger.core.config import LoggingConfig

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def json_formatter() -> JsonFormatter:
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``event`` plus the ``extra`` fields."""

    return JsonFormatter(
        _TEXT_FORMAT,
        rename_fields={"asctime": "ts", "levelname": "level", "name": "logger", "message": "event"},
        json_default=str,
    )


def configure_logging(cfg: LoggingConfig) -> None:
    root = logging.getLogger("ledger")
    root.setLevel(str(cfg.level).upper())

    handler = logging.StreamHandler()
    if cfg.json_output:
        handler.setFormatter(json_formatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root.handlers = [handler]
