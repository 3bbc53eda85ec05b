"""Window bucket key derivation.

A bucket key names one fixed window's counter for one rate-limit key. Two
instants share a bucket iff they fall into the same epoch slice of
``window_length`` seconds.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from hashlib import sha256

DEFAULT_KEY_PREFIX = "httprate"
DEFAULT_REDIS_ADDRESS = "127.0.0.1:6379"

Instant = datetime | float | int
WindowLength = timedelta | float | int


def window_seconds(window_length: WindowLength) -> float:
    """Normalize a window length to positive seconds.

    Raises:
        ValueError: If the window length is not positive.
    """

    if isinstance(window_length, timedelta):
        seconds = window_length.total_seconds()
    else:
        seconds = float(window_length)
    if not seconds > 0:
        raise ValueError("window_length must be > 0")
    return seconds


def epoch_seconds(instant: Instant) -> float:
    """Return UNIX seconds for an instant. Naive datetimes are read as UTC."""

    if isinstance(instant, datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.timestamp()
    return float(instant)


def window_index(instant: Instant, window_length: WindowLength) -> int:
    """Index of the epoch slice containing ``instant``."""

    return math.floor(epoch_seconds(instant) / window_seconds(window_length))


def truncate_to_window(instant: Instant, window_length: WindowLength) -> datetime:
    """Start of the window containing ``instant``, as an aware UTC datetime."""

    seconds = window_seconds(window_length)
    start = window_index(instant, seconds) * seconds
    return datetime.fromtimestamp(start, tz=timezone.utc)


def window_bounds(instant: Instant, window_length: WindowLength) -> tuple[datetime, datetime]:
    """Return (current_window_start, previous_window_start) for ``instant``."""

    current = truncate_to_window(instant, window_length)
    previous = current - timedelta(seconds=window_seconds(window_length))
    return current, previous


def derive_window_key(
    key: str,
    instant: Instant,
    window_length: WindowLength,
    *,
    prefix: str = DEFAULT_KEY_PREFIX,
) -> str:
    """Build the storage key for the bucket holding ``instant``.

    The rate-limit key is hashed so secrets such as API keys never reach the
    store verbatim.

    Args:
        key: Opaque rate-limit key (e.g. ``ip:10.0.0.1``).
        instant: Any point in the window (datetime or UNIX seconds).
        window_length: Window size as a timedelta or seconds.
        prefix: Namespace for the stored key.

    Returns:
        ``"<prefix>:<16 hex chars>"``.
    """

    hasher = sha256()
    hasher.update(key.encode())
    hasher.update(b"\x00")
    hasher.update(str(window_index(instant, window_length)).encode())
    return f"{prefix}:{hasher.hexdigest()[:16]}"
