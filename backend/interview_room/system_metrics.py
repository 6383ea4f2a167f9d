import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "rooms_active": 0.0,
    "sessions_started": 0.0,
    "sessions_connected": 0.0,
    "provider_errors": 0.0,
    "transcripts_fetched": 0.0,
    "transcripts_missing": 0.0,
    "terminal_guest": 0.0,
    "terminal_review": 0.0,
    "terminal_fallback": 0.0,
    "guest_completion_failures": 0.0,
    "interview_record_failures": 0.0,
    "room_disconnects_total": 0.0,
    "room_disconnect_client_disconnect": 0.0,
    "room_disconnect_terminal": 0.0,
    "room_disconnect_heartbeat_timeout": 0.0,
    "room_disconnect_other": 0.0,
}
_durations = {"total_sec": 0.0, "samples": 0}

_DISCONNECT_REASONS = {"client_disconnect", "terminal", "heartbeat_timeout"}


def _adjust(name: str, delta: float) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        # gauges like rooms_active must never go negative after a double teardown
        _metrics[key] = max(0.0, _metrics.get(key, 0.0) + float(delta))


def increment_metric(name: str, amount: float = 1.0) -> None:
    _adjust(name, amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    _adjust(name, -amount)


def get_metric(name: str) -> float:
    with _lock:
        return _metrics.get(str(name or "").strip(), 0.0)


def observe_session_duration(seconds: float) -> None:
    with _lock:
        _durations["total_sec"] += max(0.0, float(seconds or 0.0))
        _durations["samples"] += 1


def record_room_disconnect(reason: str) -> None:
    normalized = str(reason or "").strip().lower().replace("-", "_").replace(" ", "_")
    bucket = normalized if normalized in _DISCONNECT_REASONS else "other"
    _adjust("room_disconnects_total", 1)
    _adjust(f"room_disconnect_{bucket}", 1)


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        counters = {key: int(value) for key, value in _metrics.items()}
        samples = _durations["samples"]
        total_sec = _durations["total_sec"]

    snapshot: dict[str, Any] = {
        "generated_at": time.time(),
        "avg_session_duration_sec": round(total_sec / samples, 2) if samples else 0.0,
        "session_duration_samples": samples,
        **counters,
    }
    if extra:
        snapshot.update(extra)
    return snapshot
