"""Time-derived entry identifiers."""

import threading
from datetime import UTC, datetime

_lock = threading.Lock()
_last_ms = 0
_counter = 0


def generate_id(prefix: str = "KNOWLEDGE", now: datetime | None = None) -> str:
    """Return ``PREFIX-YYYYMMDD-HHMMSSmmm`` (UTC), suffixed ``-NNN`` within one millisecond.

    IDs sort lexicographically in creation order (up to 999 IDs per
    millisecond), which makes them usable as a deterministic tie-breaker.
    """
    global _last_ms, _counter
    with _lock:
        if now is None:
            now = datetime.now(UTC)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        now = now.astimezone(UTC)
        ms = int(now.timestamp() * 1000)
        if ms == _last_ms:
            _counter += 1
        else:
            _last_ms = ms
            _counter = 0
        counter = _counter

    stamp = now.strftime("%Y%m%d-%H%M%S") + f"{now.microsecond // 1000:03d}"
    suffix = f"-{counter:03d}" if counter > 0 else ""
    return f"{prefix}-{stamp}{suffix}"
