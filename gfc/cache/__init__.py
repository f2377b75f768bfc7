"""Cache module for GFC."""

from gfc.cache.staleness import StalenessTracker
from gfc.cache.store import FormStore

__all__ = [
    "FormStore",
    "StalenessTracker",
]
