import threading

import pytest

from nodesmith.errors import EndpointConfigurationError, SyncQueryError, SyncTimeoutError, SyncTrackingError
from nodesmith.services.sync_tracker import CANCELLED, ERRORED, SYNCED, TIMED_OUT, SyncTracker

EXECUTION_URL = "http://localhost:8545"
CONSENSUS_URL = "http://localhost:5052"


class ScriptedQuery:
    """Returns (or raises) scripted answers, repeating the last one."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _tracker(query_execution, query_consensus, **kwargs):
    kwargs.setdefault("interval", 0.01)
    kwargs.setdefault("deadline", 5.0)
    return SyncTracker(
        EXECUTION_URL,
        CONSENSUS_URL,
        query_execution=query_execution,
        query_consensus=query_consensus,
        cancel_check_seconds=0.01,
        **kwargs,
    )


def test_tracker_finishes_when_both_endpoints_are_synced():
    tracker = _tracker(ScriptedQuery(True), ScriptedQuery(True))

    report = tracker.run()

    assert report.state == SYNCED
    assert report.ticks == 1
    assert report.status.synced
    report.raise_for_state()


def test_deadline_shorter_than_two_intervals_allows_one_tick():
    execution = ScriptedQuery(False)
    tracker = _tracker(execution, ScriptedQuery(False), interval=10.0, deadline=10.0, clock=lambda: 0.0)

    report = tracker.run()

    assert report.state == TIMED_OUT
    assert report.ticks == 1
    assert execution.calls == [EXECUTION_URL]
    with pytest.raises(SyncTimeoutError, match="Suggested action"):
        report.raise_for_state()


def test_query_errors_are_recorded_and_polling_continues():
    execution = ScriptedQuery(SyncQueryError("connection refused"), True)
    consensus = ScriptedQuery(True)
    tracker = _tracker(execution, consensus)

    report = tracker.run()

    assert report.state == SYNCED
    assert report.ticks == 2
    assert report.status.last_error == "connection refused"
    assert len(execution.calls) == 2


def test_synced_endpoint_is_not_queried_again():
    execution = ScriptedQuery(False, False, True)
    consensus = ScriptedQuery(True, False)
    tracker = _tracker(execution, consensus)

    report = tracker.run()

    assert report.state == SYNCED
    assert report.status.consensus_synced is True
    assert consensus.calls == [CONSENSUS_URL]
    assert len(execution.calls) == 3


def test_malformed_endpoint_errors_before_first_tick():
    execution = ScriptedQuery(True)
    tracker = SyncTracker("not a url", CONSENSUS_URL, query_execution=execution, query_consensus=ScriptedQuery(True))

    report = tracker.run()

    assert report.state == ERRORED
    assert report.ticks == 0
    assert execution.calls == []
    with pytest.raises(SyncTrackingError, match="Malformed execution endpoint"):
        report.raise_for_state()


def test_endpoint_configuration_error_stops_tracking():
    tracker = _tracker(ScriptedQuery(EndpointConfigurationError("wrong port")), ScriptedQuery(False))

    report = tracker.run()

    assert report.state == ERRORED
    assert report.status.last_error == "wrong port"


def test_stop_before_run_cancels_without_querying():
    execution = ScriptedQuery(False)
    tracker = _tracker(execution, ScriptedQuery(False))
    tracker.stop()

    report = tracker.run()

    assert report.state == CANCELLED
    assert execution.calls == []
    report.raise_for_state()


def test_stop_from_another_thread_cancels_between_ticks():
    ticked = threading.Event()
    results = {}

    tracker = _tracker(
        ScriptedQuery(False),
        ScriptedQuery(False),
        interval=60.0,
        deadline=600.0,
        on_progress=lambda _status, _ticks: ticked.set(),
    )

    worker = threading.Thread(target=lambda: results.setdefault("report", tracker.run()))
    worker.start()
    assert ticked.wait(5)
    tracker.stop()
    worker.join(5)

    assert not worker.is_alive()
    assert results["report"].state == CANCELLED
    assert tracker.state == CANCELLED


def test_socket_errors_from_queries_are_recorded_and_polling_continues():
    execution = ScriptedQuery(ConnectionRefusedError("connection refused"), True)
    tracker = _tracker(execution, ScriptedQuery(True))

    report = tracker.run()

    assert report.state == SYNCED
    assert report.ticks == 2
    assert report.status.last_error == "connection refused"


def test_unexpected_query_exception_ends_in_errored_state():
    tracker = _tracker(ScriptedQuery(KeyError("result")), ScriptedQuery(False))

    report = tracker.run()

    assert report.state == ERRORED
    assert tracker.state == ERRORED
    assert "KeyError" in report.status.last_error


def test_stop_during_in_flight_queries_does_not_wait_for_them():
    release = threading.Event()
    started = threading.Barrier(3)

    def blocking_query(_url):
        started.wait(5)
        release.wait(5)
        return True

    tracker = _tracker(blocking_query, blocking_query, interval=60.0, deadline=600.0)
    results = {}
    worker = threading.Thread(target=lambda: results.setdefault("report", tracker.run()))
    worker.start()

    try:
        started.wait(5)
        tracker.stop()
        worker.join(2)

        assert not worker.is_alive()
        assert not release.is_set()
        assert results["report"].state == CANCELLED
        assert results["report"].ticks == 0
    finally:
        release.set()
        worker.join(5)
