"""ledger.core

Core primitives.

Everything else in the ledger builds on these; this package depends on nothing above it.
"""

from .config import Config
from .database import Database
from .events import EventType
from .exceptions import LedgerError
from .models import Event
from .time import parse_dt, utc_now

__all__ = [
    "Config",
    "Database",
    "Event",
    "EventType",
    "LedgerError",
    "utc_now",
    "parse_dt",
]
