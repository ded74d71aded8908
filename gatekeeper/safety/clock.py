"""Millisecond clock used for rate counters and ban expiry."""

import time


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)
