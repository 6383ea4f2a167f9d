import time

from interview_room.room.registry import RoomRegistry


def test_room_registry_register_touch_inactive_cleanup():
    registry = RoomRegistry()

    registry.register("r1", client_id="browser-1", controller=object())
    item = registry.get("r1")
    assert item is not None
    assert item["active"] is True
    assert registry.active_for_client("browser-1") == ["r1"]

    before_touch = float(item["updated_at"])
    time.sleep(0.01)
    registry.touch("r1")
    assert float(registry.get("r1")["updated_at"]) >= before_touch

    registry.mark_inactive("r1")
    assert registry.get("r1")["active"] is False
    assert registry.active_for_client("browser-1") == []

    # ttl below the 30s floor is clamped, so age the entry directly
    registry._rooms["r1"]["updated_at"] = time.time() - 3600
    assert registry.cleanup_inactive(ttl_sec=0) == 1
    assert registry.get("r1") is None


def test_cleanup_keeps_active_rooms():
    registry = RoomRegistry()
    registry.register("r1", client_id="browser-1", controller=object())
    registry._rooms["r1"]["updated_at"] = time.time() - 3600

    assert registry.cleanup_inactive(ttl_sec=60) == 0
    assert registry.get("r1") is not None
