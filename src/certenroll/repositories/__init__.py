"""Persistence for enrolled certificate records.

Records are keyed by tracking ID; see :mod:`certenroll.repositories.state`.
"""

from certenroll.repositories.state import (
    JsonFileStateStore,
    MemoryStateStore,
    StateStore,
)

__all__ = [
    "JsonFileStateStore",
    "MemoryStateStore",
    "StateStore",
]
