"""Connection monitor tests."""

from libs.core.domain.connectivity import ConnectivityTracker, is_connected


def test_connected_just_inside_staleness_threshold() -> None:
    assert is_connected(now=9.999, last_reading_ts=0.0, staleness_threshold_sec=10.0)


def test_disconnected_just_past_staleness_threshold() -> None:
    assert not is_connected(now=10.001, last_reading_ts=0.0, staleness_threshold_sec=10.0)


def test_never_seen_stream_is_disconnected() -> None:
    assert not is_connected(now=0.0, last_reading_ts=None)


def test_is_connected_is_side_effect_free() -> None:
    results = {is_connected(now=5.0, last_reading_ts=0.0) for _ in range(3)}

    assert results == {True}


def test_tracker_reports_only_state_changes() -> None:
    tracker = ConnectivityTracker(staleness_threshold_sec=10.0)

    assert tracker.tick(now=0.0) is None
    assert tracker.connected is False

    tracker.mark_reading(0.0)
    assert tracker.tick(now=0.5) is True
    assert tracker.tick(now=9.999) is None
    assert tracker.tick(now=10.001) is False
    assert tracker.tick(now=11.0) is None
    assert tracker.connected is False

    tracker.mark_reading(12.0)
    assert tracker.tick(now=12.0) is True
    assert tracker.connected is True


def test_tracker_ignores_out_of_order_timestamps() -> None:
    tracker = ConnectivityTracker()

    tracker.mark_reading(20.0)
    tracker.mark_reading(5.0)

    assert tracker.last_reading_ts == 20.0
