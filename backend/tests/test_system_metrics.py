from interview_room.system_metrics import (
    decrement_metric,
    get_metric,
    get_metrics_snapshot,
    increment_metric,
    observe_session_duration,
    record_room_disconnect,
)


def test_gauges_never_go_negative():
    start = get_metric("rooms_active")
    increment_metric("rooms_active", 1)
    decrement_metric("rooms_active", start + 5)

    assert get_metric("rooms_active") == 0.0


def test_disconnect_reasons_are_bucketed():
    before_total = get_metric("room_disconnects_total")
    before_other = get_metric("room_disconnect_other")
    before_timeout = get_metric("room_disconnect_heartbeat_timeout")

    record_room_disconnect("heartbeat-timeout")
    record_room_disconnect("message_too_large")

    assert get_metric("room_disconnects_total") == before_total + 2
    assert get_metric("room_disconnect_heartbeat_timeout") == before_timeout + 1
    assert get_metric("room_disconnect_other") == before_other + 1


def test_snapshot_includes_counters_and_average_duration():
    observe_session_duration(30)
    snapshot = get_metrics_snapshot(extra={"build": "test"})

    assert snapshot["build"] == "test"
    assert snapshot["session_duration_samples"] >= 1
    assert snapshot["avg_session_duration_sec"] > 0
    assert isinstance(snapshot["terminal_review"], int)
