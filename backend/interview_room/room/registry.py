from __future__ import annotations

import time
from threading import Lock

MIN_ROOM_TTL_SEC = 30.0


class RoomRegistry:
    """Live interview rooms by room id, for cleanup and per-browser lookups."""

    def __init__(self):
        self._lock = Lock()
        self._rooms: dict[str, dict] = {}

    def register(self, room_id: str, client_id: str, controller) -> None:
        now_ts = time.time()
        with self._lock:
            self._rooms[room_id] = {
                "client_id": client_id,
                "controller": controller,
                "created_at": now_ts,
                "updated_at": now_ts,
                "active": True,
            }

    def _update(self, room_id: str, **fields) -> None:
        with self._lock:
            entry = self._rooms.get(room_id)
            if entry is not None:
                entry.update(fields, updated_at=time.time())

    def touch(self, room_id: str) -> None:
        self._update(room_id)

    def mark_inactive(self, room_id: str) -> None:
        self._update(room_id, active=False)

    def get(self, room_id: str) -> dict | None:
        with self._lock:
            entry = self._rooms.get(room_id)
            return dict(entry) if entry else None

    def active_for_client(self, client_id: str) -> list[str]:
        with self._lock:
            return [
                room_id
                for room_id, entry in self._rooms.items()
                if entry["active"] and entry["client_id"] == client_id
            ]

    def cleanup_inactive(self, ttl_sec: float) -> int:
        cutoff = time.time() - max(MIN_ROOM_TTL_SEC, float(ttl_sec or 900.0))
        with self._lock:
            expired = [
                room_id
                for room_id, entry in self._rooms.items()
                if not entry["active"] and entry["updated_at"] <= cutoff
            ]
            for room_id in expired:
                del self._rooms[room_id]
        return len(expired)


room_registry = RoomRegistry()
