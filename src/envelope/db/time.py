"""Time utilities for database models."""

import time


def unix_now() -> int:
    """Return the current wall-clock time in whole seconds since the epoch."""
    return int(time.time())
