# src/spam_blocker/db/time.py
"""Time utilities for stored records.

Every timestamp persisted by the service is an integer count of Unix seconds.
"""

import time


def now_seconds() -> int:
    """Return the current Unix time in whole seconds."""
    return int(time.time())
