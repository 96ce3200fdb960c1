from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any, Callable, Dict, Optional

from offline_sync.api.client import ApiClient
from offline_sync.core.clock import Clock, SystemClock
from offline_sync.core.errors import AuthRequired, NetworkUnreachable, ServerRejected
from offline_sync.core.retry import RetryPolicy, call_with_retry
from offline_sync.jobs.models import JobRecord, JobSnapshot, JobStatus, clamp_progress, parse_server_status
from offline_sync.monitors.focus import FocusMonitor
from offline_sync.monitors.network import NetworkMonitor

logger = logging.getLogger(__name__)

JOBS_PATH = "/jobs"


class _JobSession:
    def __init__(self, record: JobRecord) -> None:
        self.record = record
        self.history: list[JobSnapshot] = []
        self.changed = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.closed = False

    def wake(self) -> None:
        # Observers hold a reference to the current event; swap before setting it.
        previous = self.changed
        self.changed = asyncio.Event()
        previous.set()


class JobObservation:
    """
    Async iterator over the snapshots of one job.

    Every observation replays the session from its first snapshot, then follows live
    updates. Iteration ends after a COMPLETED or FAILED snapshot, when the job is
    cancelled, or when `close()` is called on this observation.
    """

    def __init__(self, session: _JobSession, on_start: Callable[[_JobSession], None]) -> None:
        self._session = session
        self._on_start = on_start
        self._index = 0
        self._started = False
        self._done = False

    @property
    def job_id(self) -> str:
        return self._session.record.job_id

    def __aiter__(self) -> JobObservation:
        return self

    async def __anext__(self) -> JobSnapshot:
        if not self._started:
            self._started = True
            self._on_start(self._session)
        while True:
            if self._done:
                raise StopAsyncIteration
            session = self._session
            changed = session.changed
            if self._index < len(session.history):
                snapshot = session.history[self._index]
                self._index += 1
                if snapshot.is_terminal:
                    self._done = True
                return snapshot
            if session.closed:
                self._done = True
                raise StopAsyncIteration
            await changed.wait()

    def close(self) -> None:
        self._done = True
        self._session.wake()


def _log_poll_result(task: asyncio.Task) -> None:
    try:
        task.result()
    except asyncio.CancelledError:
        return
    except Exception:
        logger.exception("Job poll loop failed unexpectedly.")


class JobPoller:
    """
    Submits long-running jobs and polls them to a terminal state.

    Each job moves QUEUED -> WORKING -> COMPLETED | FAILED. At most one poll loop runs per
    job id; every observer of a job shares that loop's snapshots. Polling runs at a fixed
    interval, pauses while offline, and pauses after `max_background_polls` consecutive
    polls while the app is in the background until it is focused again.
    """

    def __init__(
        self,
        *,
        api: ApiClient,
        network: NetworkMonitor,
        focus: FocusMonitor,
        clock: Optional[Clock] = None,
        poll_interval_seconds: float = 2.0,
        max_background_polls: int = 30,
        retry_policy: RetryPolicy = RetryPolicy(),
        jobs_path: str = JOBS_PATH,
    ) -> None:
        self._api = api
        self._network = network
        self._focus = focus
        self._clock = clock or SystemClock()
        self._poll_interval_seconds = poll_interval_seconds
        self._max_background_polls = max(1, max_background_polls)
        self._retry_policy = retry_policy
        self._jobs_path = "/" + jobs_path.strip("/")
        self._sessions: Dict[str, _JobSession] = {}

    async def submit(self, payload: Any, **params: Any) -> str:
        """
        Submit a job and start polling it. Returns the server-assigned job id.

        The request is sent once. Any failure (HTTP error, an `error` field in the body, or
        a missing job id) is raised to the caller and no polling starts.
        """
        body = {"input": payload, **params}
        data = await self._api.post(self._jobs_path, body)
        if not isinstance(data, dict):
            raise ServerRejected("Job submission returned no data.")
        error = data.get("error")
        if error:
            raise ServerRejected(str(error))
        job_id = data.get("job_id")
        if job_id is None or not str(job_id).strip():
            raise ServerRejected("Job submission response did not include a job_id.")
        job_id = str(job_id).strip()

        session = self._sessions.get(job_id)
        if session is None:
            session = self._new_session(job_id)
            self._publish(session)
        logger.info("Job submitted. job_id=%s", job_id)
        self._ensure_polling(session)
        return job_id

    def observe(self, job_id: str) -> JobObservation:
        session = self._sessions.get(job_id)
        if session is None:
            # Observing a job this poller did not submit starts polling it.
            session = self._new_session(job_id)
        return JobObservation(session, self._ensure_polling)

    def cancel(self, job_id: str) -> bool:
        """Stop polling locally. The server-side job is left running."""
        session = self._sessions.get(job_id)
        if session is None or session.closed:
            return False
        session.closed = True
        if session.task is not None and not session.task.done():
            session.task.cancel()
        session.wake()
        logger.info("Job polling cancelled. job_id=%s status=%s", job_id, session.record.status.value)
        return True

    def get(self, job_id: str) -> Optional[JobRecord]:
        session = self._sessions.get(job_id)
        if session is None:
            return None
        return dataclasses.replace(session.record)

    async def close(self) -> None:
        tasks = []
        for session in self._sessions.values():
            session.closed = True
            if session.task is not None and not session.task.done():
                session.task.cancel()
                tasks.append(session.task)
            session.wake()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._sessions.clear()

    def _new_session(self, job_id: str) -> _JobSession:
        record = JobRecord(job_id=job_id, status=JobStatus.QUEUED, created_at=self._clock.now())
        session = _JobSession(record)
        self._sessions[job_id] = session
        return session

    def _ensure_polling(self, session: _JobSession) -> None:
        if session.closed or session.record.status.is_terminal:
            return
        if session.task is not None and not session.task.done():
            return
        session.task = asyncio.create_task(self._poll_loop(session))
        session.task.add_done_callback(_log_poll_result)

    async def _poll_loop(self, session: _JobSession) -> None:
        record = session.record
        background_polls = 0
        while not record.status.is_terminal:
            await self._clock.sleep(self._poll_interval_seconds)

            if not self._network.online:
                logger.info("Job polling paused while offline. job_id=%s", record.job_id)
                await self._network.wait_for(True)

            if not self._focus.focused and background_polls >= self._max_background_polls:
                logger.info(
                    "Job polling paused until the app is focused. job_id=%s background_polls=%d",
                    record.job_id,
                    background_polls,
                )
                await self._focus.wait_for(True)
                background_polls = 0

            background_polls = background_polls + 1 if not self._focus.focused else 0

            try:
                data = await call_with_retry(
                    lambda: self._api.get(f"{self._jobs_path}/{record.job_id}"),
                    policy=self._retry_policy,
                    clock=self._clock,
                    is_online=lambda: self._network.online,
                    label=f"job:{record.job_id}",
                )
            except NetworkUnreachable:
                continue
            except AuthRequired as e:
                self._fail(session, f"Authentication required: {e}")
                break
            except Exception as e:
                self._fail(session, str(e) or type(e).__name__)
                break

            self._apply(session, data)

        logger.info("Job polling finished. job_id=%s status=%s", record.job_id, record.status.value)

    def _apply(self, session: _JobSession, data: Any) -> None:
        record = session.record
        record.last_polled_at = self._clock.now()
        if not isinstance(data, dict):
            logger.warning("Ignoring job status response without a body. job_id=%s", record.job_id)
            return

        status = parse_server_status(data.get("status"))
        if status is None:
            logger.debug("Ignoring unrecognised job status. job_id=%s status=%r", record.job_id, data.get("status"))
            return
        progress = clamp_progress(data.get("progress"))

        if status.rank < record.status.rank or (status.rank == record.status.rank and progress < record.progress):
            logger.debug(
                "Discarding job status older than the last observed one. job_id=%s status=%s progress=%d",
                record.job_id,
                status.value,
                progress,
            )
            return

        record.status = status
        record.progress = progress
        if status is JobStatus.COMPLETED:
            record.result = data.get("result")
        elif status is JobStatus.FAILED:
            record.error = str(data.get("error") or "Job failed.")
        self._publish(session)

    def _fail(self, session: _JobSession, message: str) -> None:
        record = session.record
        logger.warning("Job polling gave up. job_id=%s error=%s", record.job_id, message)
        record.status = JobStatus.FAILED
        record.error = message
        self._publish(session)

    def _publish(self, session: _JobSession) -> None:
        snapshot = session.record.snapshot()
        if session.history and session.history[-1] == snapshot:
            return
        session.history.append(snapshot)
        session.wake()
