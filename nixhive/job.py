"""Job control.

Jobs report events through a queue to a job monitor, which keeps track of
their states and forwards human-readable progress lines to a progress sink.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from .errors import UnknownError
from .jobstate import (
    EventPayload,
    JobMetadata,
    JobState,
    JobStats,
    JobType,
    Line,
    LineStyle,
    PayloadKind,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

# Maximum log lines to print for failures.
LOG_CONTEXT_LINES = 20


@dataclass(frozen=True)
class ProgressMessage:
    """A message for the progress output.

    ``kind`` is one of ``hint_label_width``, ``print``, ``print_meta`` and
    ``complete``.
    """

    kind: str
    line: Line | None = None
    width: int | None = None

    @classmethod
    def hint_label_width(cls, width: int) -> ProgressMessage:
        return cls("hint_label_width", width=width)

    @classmethod
    def print(cls, line: Line) -> ProgressMessage:
        return cls("print", line=line)

    @classmethod
    def print_meta(cls, line: Line) -> ProgressMessage:
        return cls("print_meta", line=line)

    @classmethod
    def complete(cls) -> ProgressMessage:
        return cls("complete")


ProgressSink = Callable[[ProgressMessage], Any]


@dataclass(frozen=True)
class Event:
    """An event sent from a job to the monitor."""

    job_id: uuid.UUID
    payload: EventPayload


class JobHandle:
    """A handle through which a job reports to the monitor."""

    def __init__(
        self, job_id: uuid.UUID, queue: Optional[asyncio.Queue] = None
    ) -> None:
        self.job_id = job_id
        self._queue = queue

    def create_job(self, job_type: JobType, nodes: Iterable[str]) -> JobHandle:
        """Creates a new job with a distinct ID and announces it."""
        if job_type is JobType.META:
            raise UnknownError("Cannot create a meta job!")
        handle = JobHandle(uuid.uuid4(), self._queue)
        handle._send_payload(
            EventPayload(PayloadKind.CREATION, job_type=job_type, nodes=tuple(nodes))
        )
        return handle

    async def run(self, func: Callable[[JobHandle], Awaitable[T]]) -> T:
        """Runs ``func``, reporting Running at once and the outcome afterwards."""
        return await self._run_internal(func, report_running=True)

    async def run_waiting(self, func: Callable[[JobHandle], Awaitable[T]]) -> T:
        """Runs ``func`` without reporting Running first."""
        return await self._run_internal(func, report_running=False)

    def stdout(self, output: str) -> None:
        """Sends a line of child stdout."""
        self._send_payload(EventPayload(PayloadKind.CHILD_STDOUT, text=output))

    def stderr(self, output: str) -> None:
        """Sends a line of child stderr."""
        self._send_payload(EventPayload(PayloadKind.CHILD_STDERR, text=output))

    def message(self, message: str) -> None:
        """Sends a human-readable message."""
        self._send_payload(EventPayload(PayloadKind.MESSAGE, text=message))

    def state(self, new_state: JobState) -> None:
        """Transitions to a new job state."""
        self._send_payload(EventPayload(PayloadKind.NEW_STATE, state=new_state))

    def success_with_message(self, message: str) -> None:
        """Marks the job as successful with a custom message."""
        self._send_payload(EventPayload(PayloadKind.SUCCESS_WITH_MESSAGE, text=message))

    def noop(self, message: str) -> None:
        """Marks the job as a no-op."""
        self._send_payload(EventPayload(PayloadKind.NOOP, text=message))

    def failure(self, error: BaseException) -> None:
        """Marks the job as failed."""
        self._send_payload(EventPayload(PayloadKind.FAILURE, text=str(error)))

    async def _run_internal(
        self, func: Callable[[JobHandle], Awaitable[T]], report_running: bool
    ) -> T:
        if report_running:
            self.state(JobState.RUNNING)
        try:
            value = await func(self)
        except Exception as e:
            self.failure(e)
            raise
        self.state(JobState.SUCCEEDED)
        return value

    def _send_payload(self, payload: EventPayload) -> None:
        if payload.is_privileged():
            raise RuntimeError("Tried to send privileged payload with JobHandle")
        event = Event(self.job_id, payload)
        if self._queue is not None:
            self._queue.put_nowait(event)
        else:
            log.debug("Sending event: %r", event)


class MetaJobHandle:
    """The handle of the meta job, which shuts the monitor down when done."""

    def __init__(self, job_id: uuid.UUID, queue: asyncio.Queue) -> None:
        self.job_id = job_id
        self._queue = queue

    async def run(self, func: Callable[[JobHandle], Awaitable[T]]) -> T:
        """Runs ``func`` as the meta job and then shuts the monitor down."""
        handle = JobHandle(self.job_id, self._queue)
        try:
            value = await func(handle)
        except Exception as e:
            self._send(EventPayload(PayloadKind.FAILURE, text=str(e)))
            raise
        else:
            self._send(EventPayload(PayloadKind.NEW_STATE, state=JobState.SUCCEEDED))
            return value
        finally:
            self._send(EventPayload(PayloadKind.SHUTDOWN_MONITOR))

    def _send(self, payload: EventPayload) -> None:
        self._queue.put_nowait(Event(self.job_id, payload))


class JobMonitor:
    """Coordinator of all job states."""

    # Pause after completing the progress output, giving it time to settle.
    finish_delay: float = 1.0

    def __init__(
        self,
        queue: asyncio.Queue,
        meta_job_id: uuid.UUID,
        progress: Optional[ProgressSink] = None,
    ) -> None:
        self._queue = queue
        self.meta_job_id = meta_job_id
        self.progress = progress
        self.label_width: int | None = None
        self.events: list[Event] = []
        self.jobs: dict[uuid.UUID, JobMetadata] = {
            meta_job_id: JobMetadata(
                job_id=meta_job_id, job_type=JobType.META, state=JobState.RUNNING
            )
        }

    @classmethod
    def create(
        cls, progress: Optional[ProgressSink] = None
    ) -> tuple[JobMonitor, MetaJobHandle]:
        """Creates a monitor together with the handle of its meta job."""
        queue: asyncio.Queue = asyncio.Queue()
        meta_job_id = uuid.uuid4()
        return cls(queue, meta_job_id, progress), MetaJobHandle(meta_job_id, queue)

    async def run_until_completion(self) -> JobMonitor:
        """Processes events until the meta job shuts the monitor down."""
        if self.label_width is not None and self.progress is not None:
            self.progress(ProgressMessage.hint_label_width(self.label_width))

        while True:
            event: Event = await self._queue.get()
            payload = event.payload
            kind = payload.kind

            if kind is PayloadKind.CREATION:
                assert event.job_id not in self.jobs
                self.jobs[event.job_id] = JobMetadata(
                    job_id=event.job_id,
                    job_type=payload.job_type,
                    nodes=list(payload.nodes),
                )
            elif kind is PayloadKind.SHUTDOWN_MONITOR:
                assert event.job_id == self.meta_job_id
                return await self._finish()
            elif kind in (
                PayloadKind.NEW_STATE,
                PayloadKind.SUCCESS_WITH_MESSAGE,
                PayloadKind.NOOP,
                PayloadKind.FAILURE,
            ):
                self._apply_state_payload(event.job_id, payload)
                if event.job_id != self.meta_job_id:
                    self._print_job_stats()
            elif self.progress is not None:
                line = self.jobs[event.job_id].make_line(payload.text)
                self.progress(self._print_message(event.job_id, line))

            self.events.append(event)

    def _apply_state_payload(self, job_id: uuid.UUID, payload: EventPayload) -> None:
        kind = payload.kind
        if kind is PayloadKind.NEW_STATE:
            self._update_job_state(job_id, payload.state, None, False)
        elif kind is PayloadKind.SUCCESS_WITH_MESSAGE:
            self._update_job_state(job_id, JobState.SUCCEEDED, payload.text, False)
        elif kind is PayloadKind.NOOP:
            self._update_job_state(job_id, JobState.SUCCEEDED, payload.text, True)
        else:
            self._update_job_state(job_id, JobState.FAILED, payload.text, False)

    def _update_job_state(
        self,
        job_id: uuid.UUID,
        new_state: JobState,
        message: str | None,
        noop: bool,
    ) -> None:
        metadata = self.jobs[job_id]
        old_state = metadata.state

        if old_state is new_state:
            return
        if old_state.is_final():
            log.debug("Tried to update the state of a finished job")
            return

        metadata.state = new_state
        if message is not None:
            metadata.custom_message = message

        if new_state is JobState.WAITING or self.progress is None:
            return

        if new_state is JobState.SUCCEEDED and metadata.custom_message is not None:
            text: str | None = metadata.custom_message
        else:
            text = metadata.describe_state_transition()

        if text is not None:
            line = metadata.make_line(text)
            if noop:
                line = dataclasses.replace(line, style=LineStyle.SUCCESS_NOOP)
            self.progress(self._print_message(job_id, line))

    def _job_stats(self) -> JobStats:
        return JobStats.from_states(
            job.state for job in self.jobs.values() if job.job_id != self.meta_job_id
        )

    def _print_job_stats(self) -> None:
        if self.progress is None:
            return
        text = str(self._job_stats())
        line = dataclasses.replace(self.jobs[self.meta_job_id].make_line(text), noisy=True)
        self.progress(ProgressMessage.print_meta(line))

    def _print_message(self, job_id: uuid.UUID, line: Line) -> ProgressMessage:
        if job_id == self.meta_job_id:
            return ProgressMessage.print_meta(line)
        return ProgressMessage.print(line)

    async def _finish(self) -> JobMonitor:
        progress, self.progress = self.progress, None
        if progress is not None:
            progress(ProgressMessage.complete())

        await asyncio.sleep(self.finish_delay)

        for job in self.jobs.values():
            if job.state is not JobState.FAILED:
                continue
            logs = [e for e in self.events if e.job_id == job.job_id]
            last_logs = logs[-LOG_CONTEXT_LINES:]
            log.error(
                "%s - Last %d lines of logs:", job.failure_summary(), len(last_logs)
            )
            for event in last_logs:
                log.error("%s", event.payload)

        return self


def null_job_handle() -> JobHandle:
    """Returns a job handle that is not connected to any monitor."""
    return JobHandle(uuid.uuid4(), None)