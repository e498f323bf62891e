# src/spam_blocker/services/__init__.py
"""Services combining the stores with scoring and housekeeping."""

from .combined_data import CombinedDataService
from .retention import SessionRetentionWorker

__all__ = [
    "CombinedDataService",
    "SessionRetentionWorker",
]
