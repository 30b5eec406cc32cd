"""Polling state machine that waits for the execution and consensus clients to sync."""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

from nodesmith.constants import SYNC_DEADLINE_SECONDS, SYNC_POLL_INTERVAL_SECONDS
from nodesmith.errors import EndpointConfigurationError, SyncQueryError
from nodesmith.models import CONSENSUS, EXECUTION, SyncReport, SyncStatus
from nodesmith.services.endpoints import EndpointClient

POLLING = "polling"
SYNCED = "synced"
TIMED_OUT = "timed-out"
ERRORED = "errored"
CANCELLED = "cancelled"

SyncQuery = Callable[[str], bool]


class SyncTracker:
    """Polls both endpoints every ``interval`` seconds until synced, deadline or ``stop()``.

    Each tick queries the endpoints that are not synced yet in parallel. A
    failed query (``SyncQueryError`` or a socket level ``OSError``) is
    recorded in ``status.last_error`` and polling goes on; any other query
    exception ends the run as errored. Synced flags never go back
    to false, so a synced endpoint is not queried again.
    """

    def __init__(
        self,
        execution_endpoint: str,
        consensus_endpoint: str,
        query_execution: Optional[SyncQuery] = None,
        query_consensus: Optional[SyncQuery] = None,
        interval: float = SYNC_POLL_INTERVAL_SECONDS,
        deadline: float = SYNC_DEADLINE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_progress: Optional[Callable[[SyncStatus, int], None]] = None,
        cancel_check_seconds: float = 0.1,
    ):
        if query_execution is None or query_consensus is None:
            client = EndpointClient()
            query_execution = query_execution or client.execution_synced
            query_consensus = query_consensus or client.consensus_synced

        self.execution_endpoint = execution_endpoint
        self.consensus_endpoint = consensus_endpoint
        self.query_execution = query_execution
        self.query_consensus = query_consensus
        self.interval = interval
        self.deadline = deadline
        self.clock = clock
        self.on_progress = on_progress
        self.cancel_check_seconds = cancel_check_seconds

        self.state = POLLING
        self.status = SyncStatus()
        self.ticks = 0
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def run(self) -> SyncReport:
        problem = self._endpoint_problem()
        if problem:
            self.status.last_error = problem
            return self._finish(ERRORED)

        started = self.clock()
        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="nodesmith-sync")
        try:
            while True:
                if self._stop_event.is_set():
                    return self._finish(CANCELLED)

                outcome = self._tick(executor)
                if outcome is not None:
                    return self._finish(outcome)

                self.ticks += 1
                if self.on_progress is not None:
                    self.on_progress(self.status, self.ticks)

                if self.status.synced:
                    return self._finish(SYNCED)
                if self.clock() - started + self.interval >= self.deadline:
                    return self._finish(TIMED_OUT)
                if self._stop_event.wait(self.interval):
                    return self._finish(CANCELLED)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _tick(self, executor: ThreadPoolExecutor) -> Optional[str]:
        pending: Dict = {}
        if not self.status.execution_synced:
            pending[executor.submit(self.query_execution, self.execution_endpoint)] = EXECUTION
        if not self.status.consensus_synced:
            pending[executor.submit(self.query_consensus, self.consensus_endpoint)] = CONSENSUS

        while pending:
            done, _ = wait(list(pending), timeout=self.cancel_check_seconds, return_when=FIRST_COMPLETED)
            if self._stop_event.is_set():
                return CANCELLED

            for future in done:
                role = pending.pop(future)
                try:
                    synced = future.result()
                except EndpointConfigurationError as exc:
                    self.status.last_error = str(exc)
                    return ERRORED
                except (SyncQueryError, OSError, TimeoutError) as exc:
                    self.status.last_error = str(exc) or type(exc).__name__
                    continue
                except Exception as exc:
                    self.status.last_error = f"{role} query failed: {exc!r}"
                    return ERRORED

                if synced and role == EXECUTION:
                    self.status.execution_synced = True
                elif synced and role == CONSENSUS:
                    self.status.consensus_synced = True
        return None

    def _endpoint_problem(self) -> Optional[str]:
        for label, endpoint in ((EXECUTION, self.execution_endpoint), (CONSENSUS, self.consensus_endpoint)):
            parsed = urlparse(endpoint or "")
            if parsed.scheme not in {"http", "https"} or not parsed.hostname:
                return f"Malformed {label} endpoint: '{endpoint}'"
            try:
                parsed.port
            except ValueError:
                return f"Malformed {label} endpoint port: '{endpoint}'"
        return None

    def _finish(self, state: str) -> SyncReport:
        self.state = state
        return SyncReport(state=state, status=self.status, ticks=self.ticks, deadline=self.deadline)
