from models.tracking import EventType
from services.duration_calculator import compute_duration, first_start_time, last_event_time

from factories import T0, at, event


def test_empty_log_is_zero():
    assert compute_duration([], at(5000)) == 0


def test_start_only_at_reference_time_is_zero():
    assert compute_duration([event(EventType.START, 0)], T0) == 0


def test_open_session_runs_until_reference_time():
    assert compute_duration([event(EventType.START, 0)], at(5000)) == 5000


def test_start_stop_is_the_gap():
    events = [event(EventType.START, 0), event(EventType.STOP, 7250)]
    assert compute_duration(events, at(99999)) == 7250


def test_paused_gap_is_excluded():
    events = [
        event(EventType.START, 0),
        event(EventType.PAUSE, 1000),
        event(EventType.RESUME, 3000),
        event(EventType.STOP, 4000),
    ]
    assert compute_duration(events) == 2000


def test_paused_session_does_not_grow():
    events = [event(EventType.START, 0), event(EventType.PAUSE, 1500)]
    assert compute_duration(events, at(60000)) == 1500


def test_pause_without_start_is_ignored():
    assert compute_duration([event(EventType.PAUSE, 1000)], at(5000)) == 0


def test_repeated_start_restarts_interval():
    events = [event(EventType.START, 0), event(EventType.START, 2000), event(EventType.STOP, 3000)]
    assert compute_duration(events) == 1000


def test_events_are_sorted_by_timestamp():
    events = [
        event(EventType.STOP, 4000),
        event(EventType.RESUME, 3000),
        event(EventType.START, 0),
        event(EventType.PAUSE, 1000),
    ]
    assert compute_duration(events) == 2000


def test_reference_before_start_clamps_to_zero():
    assert compute_duration([event(EventType.START, 5000)], T0) == 0


def test_same_inputs_same_result():
    events = [event(EventType.START, 0), event(EventType.PAUSE, 1234)]
    first = compute_duration(events, at(9000))
    assert compute_duration(events, at(9000)) == first


def test_closing_preserves_history():
    before_stop = [event(EventType.START, 0), event(EventType.PAUSE, 1000), event(EventType.RESUME, 2500)]
    after_stop = before_stop + [event(EventType.STOP, 6000)]
    assert compute_duration(before_stop, at(6000)) == compute_duration(after_stop, at(6000)) == 4500


def test_last_event_and_first_start_helpers():
    events = [event(EventType.START, 0), event(EventType.PAUSE, 1000)]
    assert last_event_time(events) == at(1000)
    assert first_start_time(events) == T0
    assert last_event_time([]) is None
    assert first_start_time([]) is None
