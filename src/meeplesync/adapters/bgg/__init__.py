"""BoardGameGeek catalog adapter."""

from __future__ import annotations

from .client import BggAPIError, BggClient
from .source import BggCatalog

__all__ = [
    "BggAPIError",
    "BggCatalog",
    "BggClient",
]
