"""
Process-local counters surfaced by ``GET /api/health``.

Nothing here is persisted; each worker reports its own numbers since start.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from typing import Deque, Dict, Optional, Union

ERROR_WINDOW_SECONDS = 3600.0

_lock = threading.Lock()
_counters: Counter = Counter()
_errors: Deque[float] = deque()


def _drop_old_errors(now: float) -> None:
    cutoff = now - ERROR_WINDOW_SECONDS
    while _errors and _errors[0] < cutoff:
        _errors.popleft()


def record_cache_access(hit: bool) -> None:
    with _lock:
        _counters["cache_hit" if hit else "cache_miss"] += 1


def record_vote(delta: int = 1) -> None:
    """Track the net number of votes cast (unvotes pass ``-1``)."""
    with _lock:
        _counters["votes"] += delta


def record_error(ts: Optional[float] = None) -> None:
    with _lock:
        _errors.append(time.time() if ts is None else ts)
        _drop_old_errors(time.time())


def metrics_snapshot() -> Dict[str, Union[int, float]]:
    with _lock:
        _drop_old_errors(time.time())
        lookups = _counters["cache_hit"] + _counters["cache_miss"]
        hit_rate = round(_counters["cache_hit"] / lookups, 4) if lookups else 0.0
        return {
            "cache_hit_rate": hit_rate,
            "votes_cast": _counters["votes"],
            "errors_last_hour": len(_errors),
        }


def reset_metrics_for_tests() -> None:
    with _lock:
        _counters.clear()
        _errors.clear()
