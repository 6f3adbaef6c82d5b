"""Job states, metadata and the human-readable text shown for them."""

from __future__ import annotations

import enum
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

_ROUGH_LIMIT = 40
_OTHER_TEXT = ", and XX other nodes"


class JobState(enum.Enum):
    """The state of a job."""

    WAITING = "Waiting"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    def is_final(self) -> bool:
        """Returns whether this state is final."""
        return self in (JobState.FAILED, JobState.SUCCEEDED)


class JobType(enum.Enum):
    """The type of a job."""

    META = "Meta"
    EVALUATE = "Evaluate"
    BUILD = "Build"
    UPLOAD_KEYS = "UploadKeys"
    PUSH = "Push"
    ACTIVATE = "Activate"
    EXECUTE = "Execute"
    CREATE_GC_ROOTS = "CreateGcRoots"
    REBOOT = "Reboot"


class LineStyle(enum.Enum):
    """How a line of progress output is displayed."""

    NORMAL = "normal"
    SUCCESS = "success"
    SUCCESS_NOOP = "success-noop"
    FAILURE = "failure"


@dataclass(frozen=True)
class Line:
    """A line of progress output belonging to a job."""

    job_id: uuid.UUID
    text: str
    style: LineStyle = LineStyle.NORMAL
    label: str = ""
    noisy: bool = False


class PayloadKind(enum.Enum):
    """The kind of an event payload."""

    CREATION = "creation"
    SUCCESS_WITH_MESSAGE = "success_with_message"
    FAILURE = "failure"
    NOOP = "noop"
    NEW_STATE = "new_state"
    CHILD_STDOUT = "child_stdout"
    CHILD_STDERR = "child_stderr"
    MESSAGE = "message"
    SHUTDOWN_MONITOR = "shutdown_monitor"


@dataclass(frozen=True)
class EventPayload:
    """The payload of an event sent to the job monitor.

    ``text`` carries the message of textual payloads, ``state`` the new
    state of NEW_STATE payloads, and ``job_type``/``nodes`` the metadata
    of CREATION payloads.
    """

    kind: PayloadKind
    text: str = ""
    state: JobState | None = None
    job_type: JobType | None = None
    nodes: tuple[str, ...] = ()

    def is_privileged(self) -> bool:
        """Returns whether only the meta job may send this payload."""
        return self.kind is PayloadKind.SHUTDOWN_MONITOR

    def __str__(self) -> str:
        kind = self.kind
        if kind is PayloadKind.CHILD_STDOUT:
            return f"  stdout) {self.text}"
        if kind is PayloadKind.CHILD_STDERR:
            return f"  stderr) {self.text}"
        if kind is PayloadKind.MESSAGE:
            return f" message) {self.text}"
        if kind is PayloadKind.CREATION:
            return " created)"
        if kind is PayloadKind.NEW_STATE:
            state = self.state.value if self.state is not None else ""
            return f"   state) {state}"
        if kind is PayloadKind.SUCCESS_WITH_MESSAGE:
            return f" success) {self.text}"
        if kind is PayloadKind.NOOP:
            return f"    noop) {self.text}"
        if kind is PayloadKind.FAILURE:
            return f" failure) {self.text}"
        return "shutdown)"


@dataclass(frozen=True)
class JobStats:
    """Counts of jobs in each state."""

    waiting: int = 0
    running: int = 0
    succeeded: int = 0
    failed: int = 0

    @classmethod
    def from_states(cls, states: Iterable[JobState]) -> JobStats:
        """Counts the given job states."""
        counts = Counter(states)
        return cls(
            waiting=counts[JobState.WAITING],
            running=counts[JobState.RUNNING],
            succeeded=counts[JobState.SUCCEEDED],
            failed=counts[JobState.FAILED],
        )

    def __str__(self) -> str:
        parts = [
            f"{count} {name}"
            for count, name in (
                (self.running, "running"),
                (self.succeeded, "succeeded"),
                (self.failed, "failed"),
                (self.waiting, "waiting"),
            )
            if count
        ]
        return ", ".join(parts)


@dataclass
class JobMetadata:
    """Internal metadata of a job."""

    job_id: uuid.UUID
    job_type: JobType
    nodes: list[str] = field(default_factory=list)
    state: JobState = JobState.WAITING
    custom_message: str | None = None

    def label(self) -> str:
        """Returns a short human-readable label."""
        if self.job_type is JobType.META:
            return ""
        if len(self.nodes) != 1:
            return "(...)"
        return self.nodes[0]

    def make_line(self, text: str) -> Line:
        """Returns a progress line with the given text, styled by state."""
        if self.state is JobState.SUCCEEDED:
            style = LineStyle.SUCCESS
        elif self.state is JobState.FAILED:
            style = LineStyle.FAILURE
        else:
            style = LineStyle.NORMAL
        return Line(self.job_id, text, style=style, label=self.label())

    def describe_state_transition(self) -> str | None:
        """Describes the transition into the current state."""
        state = self.state
        if state is JobState.WAITING:
            return None

        node_list = describe_node_list(self.nodes) or "some node(s)"
        message = self.custom_message if self.custom_message is not None else "No message"
        job_type = self.job_type

        running_text = {
            JobType.EVALUATE: f"Evaluating {node_list}",
            JobType.BUILD: f"Building {node_list}",
            JobType.PUSH: "Pushing system closure",
            JobType.UPLOAD_KEYS: "Uploading keys",
            JobType.ACTIVATE: "Activating system profile",
            JobType.REBOOT: "Rebooting",
        }
        succeeded_text = {
            JobType.META: "All done!",
            JobType.EVALUATE: f"Evaluated {node_list}",
            JobType.BUILD: f"Built {node_list}",
            JobType.PUSH: "Pushed system closure",
            JobType.UPLOAD_KEYS: "Uploaded keys",
            JobType.REBOOT: "Rebooted",
        }
        failed_prefix = {
            JobType.EVALUATE: "Evaluation failed",
            JobType.BUILD: "Build failed",
            JobType.PUSH: "Push failed",
            JobType.UPLOAD_KEYS: "Key upload failed",
            JobType.ACTIVATE: "Activation failed",
            JobType.REBOOT: "Reboot failed",
        }

        if state is JobState.RUNNING:
            return running_text.get(job_type, "")
        if state is JobState.SUCCEEDED:
            return succeeded_text.get(job_type, "Succeeded")
        return f"{failed_prefix.get(job_type, 'Failed')}: {message}"

    def failure_summary(self) -> str:
        """Describes a failed job for the final summary."""
        node_list = describe_node_list(self.nodes) or "some node(s)"
        summaries = {
            JobType.EVALUATE: f"Failed to evaluate {node_list}",
            JobType.BUILD: f"Failed to build {node_list}",
            JobType.PUSH: f"Failed to push system closure to {node_list}",
            JobType.UPLOAD_KEYS: f"Failed to upload keys to {node_list}",
            JobType.ACTIVATE: f"Failed to deploy to {node_list}",
            JobType.REBOOT: f"Failed to reboot {node_list}",
            JobType.META: "Failed to complete requested operation",
        }
        return summaries.get(self.job_type, f"Failed to complete job on {node_list}")


def _width(s: str) -> int:
    return len(s.encode("utf-8"))


def describe_node_list(nodes: Sequence[str]) -> str | None:
    """Returns a short textual description of a list of nodes.

    Example: "alpha, beta, and 5 other nodes". Returns None for an empty list.
    """
    total = len(nodes)
    if total == 0:
        return None

    s = ""
    for idx, node in enumerate(nodes):
        is_last = idx + 1 == total

        if s:
            if is_last:
                s += ", and " if total > 2 else " and "
            else:
                s += ", "

        s += node

        if is_last:
            break

        following = nodes[idx + 1]
        used = _width(s)
        if used > _ROUGH_LIMIT:
            continue
        remaining_text = _ROUGH_LIMIT - used
        remaining_nodes = total - (idx + 1)

        if _width(following) + _width(_OTHER_TEXT) >= remaining_text:
            if remaining_nodes == 1:
                s += f", and {following}"
            else:
                s += f", and {remaining_nodes} other nodes"
            break

    return s