"""Rate math and byte formatting for pulsetop."""

import math

MIN_ELAPSED_SECONDS = 1e-9

_UNITS = [("TB", 1024**4), ("GB", 1024**3), ("MB", 1024**2), ("KB", 1024)]


def rate(prev_cumulative: int, curr_cumulative: int, elapsed_seconds: float) -> float:
    """
    Convert two samples of a cumulative counter into a per-second rate.

    A counter that went backwards (reset or wraparound) contributes a zero
    delta. The elapsed time is floored so two samples taken at the same
    instant give 0.0 rather than a division error.

    Args:
        prev_cumulative: Counter value at the previous sample.
        curr_cumulative: Counter value at the current sample.
        elapsed_seconds: Seconds between the two samples.

    Returns:
        A finite, non-negative bytes-per-second value.
    """
    if not math.isfinite(elapsed_seconds):
        return 0.0
    delta = max(curr_cumulative - prev_cumulative, 0)
    return delta / max(elapsed_seconds, MIN_ELAPSED_SECONDS)


def format_bytes(size: int) -> str:
    """Format a byte count as a human-readable string, e.g. ``1.5 KB``."""
    size = max(int(size), 0)
    for unit, scale in _UNITS:
        if size >= scale:
            return f"{size / scale:.1f} {unit}"
    return f"{size} B"


def format_rate(bytes_per_sec: float) -> str:
    """Format a byte rate, e.g. ``1.5 KB/s``. NaN and infinities read as zero."""
    if not math.isfinite(bytes_per_sec):
        return "0 B/s"
    return f"{format_bytes(int(max(bytes_per_sec, 0.0)))}/s"
