"""Evaluator backed by nix-eval-jobs, which evaluates attributes in parallel.

The executable may be pinned with the ``NIX_EVAL_JOBS`` environment variable.
"""

from __future__ import annotations

import asyncio
import json
import os
from typing import AsyncIterator, Iterable

from .errors import BadOutput, IoError, UnknownError, from_returncode, unknown
from .evaluator import (
    AttributeFailure,
    AttributeOutput,
    DrvSetEvaluator,
    EvalResult,
    GlobalFailure,
)
from .expression import NixExpression, as_expression
from .job import JobHandle, null_job_handle

_STREAM_LIMIT = 64 * 1024 * 1024
_NO_VARIANT = "data did not match any variant of untagged enum EvalLine"


def get_pinned_nix_eval_jobs() -> str | None:
    """Returns the pinned nix-eval-jobs executable, if any."""
    return os.environ.get("NIX_EVAL_JOBS") or None


def parse_eval_line(line: str) -> EvalResult:
    """Parses one line of nix-eval-jobs output.

    Raises BadOutput if the line is not a recognised JSON object.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise BadOutput(str(e)) from e

    if isinstance(data, dict):
        attr = data.get("attr")
        drv_path = data.get("drvPath")
        error = data.get("error")
        if isinstance(attr, str) and isinstance(drv_path, str):
            # Attribute names containing dots come back surrounded by quotes.
            return AttributeOutput(attr.strip('"'), drv_path)
        if isinstance(attr, str) and isinstance(error, str):
            return AttributeFailure(attr, error)
        if isinstance(error, str):
            return GlobalFailure(UnknownError(error))

    raise BadOutput(_NO_VARIANT)


class NixEvalJobs(DrvSetEvaluator):
    """Evaluates derivation sets with nix-eval-jobs."""

    def __init__(
        self,
        executable: str | os.PathLike | None = None,
        job: JobHandle | None = None,
        workers: int = 10,
    ) -> None:
        if executable is None:
            executable = get_pinned_nix_eval_jobs() or "nix-eval-jobs"
        self.executable = executable
        self.job = job if job is not None else null_job_handle()
        self.workers = workers

    def __repr__(self) -> str:
        return f"NixEvalJobs(executable={self.executable!r}, workers={self.workers})"

    async def evaluate(
        self, expression: NixExpression | str, flags: Iterable[str] = ()
    ) -> AsyncIterator[EvalResult]:
        """Starts nix-eval-jobs and returns its results as they come in."""
        expr = as_expression(expression)
        args = ["--workers", str(self.workers), "--expr", expr.expression(), *flags]
        if expr.requires_flakes():
            args += ["--extra-experimental-features", "flakes"]

        try:
            proc = await asyncio.create_subprocess_exec(
                os.fspath(self.executable),
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as e:
            raise IoError(e) from e

        stderr_task = asyncio.create_task(_forward_stderr(proc.stderr, self.job))
        return _results(proc, stderr_task)

    def set_eval_limit(self, limit: int) -> None:
        self.workers = limit

    def set_job(self, job: JobHandle) -> None:
        self.job = job


async def _forward_stderr(reader: asyncio.StreamReader, job: JobHandle) -> None:
    while True:
        try:
            raw = await reader.readline()
        except (OSError, ValueError):
            return
        if not raw:
            return
        job.stderr(raw.decode("utf-8", errors="replace").rstrip("\r\n"))


async def _results(
    proc: asyncio.subprocess.Process, stderr_task: asyncio.Task
) -> AsyncIterator[EvalResult]:
    try:
        while True:
            try:
                raw = await proc.stdout.readline()
            except OSError as e:
                yield GlobalFailure(IoError(e))
                return
            except ValueError as e:
                yield GlobalFailure(unknown(e))
                return

            if not raw:
                returncode = await proc.wait()
                if returncode != 0:
                    yield GlobalFailure(from_returncode(returncode))
                return

            line = raw.decode("utf-8", errors="replace").strip()
            try:
                result = parse_eval_line(line)
            except BadOutput as e:
                yield GlobalFailure(e)
                return
            yield result
    finally:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
        await stderr_task