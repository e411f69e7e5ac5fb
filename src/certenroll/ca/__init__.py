"""Pluggable CA connector system.

Exports the abstract base class and the registry loader.
"""

from certenroll.ca.base import CAConnector
from certenroll.ca.registry import load_connector

__all__ = [
    "CAConnector",
    "load_connector",
]
