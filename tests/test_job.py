import asyncio
import logging

import pytest

from nixhive.errors import UnknownError, Unsupported
from nixhive.job import JobMonitor, ProgressMessage, null_job_handle
from nixhive.jobstate import JobState, JobType, LineStyle, PayloadKind


def _monitor(progress=None):
    monitor, meta = JobMonitor.create(progress)
    monitor.finish_delay = 0
    return monitor, meta


@pytest.mark.asyncio
async def test_monitor_event():
    monitor, meta = _monitor()

    async def meta_func(job):
        job.message("hello world")
        eval_job = job.create_job(JobType.EVALUATE, ["alpha"])

        async def child(j):
            j.stdout("child stdout")

        await eval_job.run(child)
        raise Unsupported()

    ret, monitor = await asyncio.gather(
        meta.run(meta_func), monitor.run_until_completion(), return_exceptions=True
    )

    assert isinstance(ret, Unsupported)
    assert len(monitor.jobs) == 2

    messages = [e.payload.text for e in monitor.events if e.payload.kind is PayloadKind.MESSAGE]
    stdouts = [e.payload.text for e in monitor.events if e.payload.kind is PayloadKind.CHILD_STDOUT]
    assert messages == ["hello world"]
    assert stdouts == ["child stdout"]


@pytest.mark.asyncio
async def test_progress_scenario_with_eval_and_build():
    received = []
    monitor, meta = _monitor(received.append)

    async def meta_func(job):
        job.message("Message from meta job")
        eval_job = job.create_job(
            JobType.EVALUATE, ["alpha", "beta", "gamma", "delta", "epsilon"]
        )
        build_job = job.create_job(JobType.BUILD, ["alpha", "beta"])

        async def evaluate(j):
            for i in range(3):
                j.message(f"eval: {i}")
                await asyncio.sleep(0)

        async def build(j):
            await asyncio.sleep(0)

        await asyncio.gather(eval_job.run(evaluate), build_job.run(build))
        raise Unsupported()

    ret, monitor = await asyncio.gather(
        meta.run(meta_func), monitor.run_until_completion(), return_exceptions=True
    )

    assert isinstance(ret, Unsupported)
    assert received[-1] == ProgressMessage.complete()
    texts = [m.line.text for m in received if m.line is not None]
    assert "Message from meta job" in texts
    assert "eval: 2" in texts
    assert "2 succeeded" in texts
    states = {job.job_type: job.state for job in monitor.jobs.values()}
    assert states[JobType.META] is JobState.FAILED
    assert states[JobType.EVALUATE] is JobState.SUCCEEDED
    assert states[JobType.BUILD] is JobState.SUCCEEDED


@pytest.mark.asyncio
async def test_progress_messages_for_successful_job():
    received = []
    monitor, meta = _monitor(received.append)

    async def meta_func(job):
        build = job.create_job(JobType.BUILD, ["alpha"])

        async def work(j):
            return 42

        return await build.run(work)

    ret, _ = await asyncio.gather(meta.run(meta_func), monitor.run_until_completion())

    assert ret == 42
    summary = [(m.kind, m.line.text if m.line else None) for m in received]
    assert summary == [
        ("print", "Building alpha"),
        ("print_meta", "1 running"),
        ("print", "Built alpha"),
        ("print_meta", "1 succeeded"),
        ("print_meta", "All done!"),
        ("complete", None),
    ]
    assert received[0].line.label == "alpha"
    assert received[1].line.noisy is True
    assert received[2].line.style is LineStyle.SUCCESS


@pytest.mark.asyncio
async def test_label_width_hint_is_sent_first():
    received = []
    monitor, meta = _monitor(received.append)
    monitor.label_width = 7

    async def meta_func(job):
        return None

    await asyncio.gather(meta.run(meta_func), monitor.run_until_completion())
    assert received[0] == ProgressMessage.hint_label_width(7)


@pytest.mark.asyncio
async def test_noop_job_line_style():
    received = []
    monitor, meta = _monitor(received.append)

    async def meta_func(job):
        keys = job.create_job(JobType.UPLOAD_KEYS, ["alpha"])

        async def work(j):
            j.noop("No pre-activation keys to upload")

        await keys.run_waiting(work)

    await asyncio.gather(meta.run(meta_func), monitor.run_until_completion())

    prints = [m for m in received if m.kind == "print"]
    assert len(prints) == 1
    assert prints[0].line.text == "No pre-activation keys to upload"
    assert prints[0].line.style is LineStyle.SUCCESS_NOOP


@pytest.mark.asyncio
async def test_failed_job_text_and_summary(caplog):
    received = []
    monitor, meta = _monitor(received.append)

    async def meta_func(job):
        build = job.create_job(JobType.BUILD, ["alpha"])

        async def work(j):
            raise Unsupported()

        await build.run(work)

    with caplog.at_level(logging.ERROR, logger="nixhive.job"):
        ret, monitor = await asyncio.gather(
            meta.run(meta_func), monitor.run_until_completion(), return_exceptions=True
        )

    assert isinstance(ret, Unsupported)
    texts = [m.line.text for m in received if m.line is not None]
    assert "Build failed: This operation is not supported" in texts
    assert "1 failed" in texts
    messages = [r.getMessage() for r in caplog.records]
    assert "Failed to build alpha - Last 3 lines of logs:" in messages
    assert " failure) This operation is not supported" in messages
    assert "Failed to complete requested operation - Last 1 lines of logs:" in messages


@pytest.mark.asyncio
async def test_finished_job_state_is_not_changed():
    monitor, meta = _monitor()

    async def meta_func(job):
        child = job.create_job(JobType.EXECUTE, ["alpha"])
        child.state(JobState.RUNNING)
        child.state(JobState.FAILED)
        child.state(JobState.SUCCEEDED)

    _, monitor = await asyncio.gather(meta.run(meta_func), monitor.run_until_completion())
    child_states = [j.state for j in monitor.jobs.values() if j.job_type is JobType.EXECUTE]
    assert child_states == [JobState.FAILED]


@pytest.mark.asyncio
async def test_null_job_handle_runs_without_monitor():
    handle = null_job_handle()
    child = handle.create_job(JobType.BUILD, ["alpha"])

    async def work(j):
        j.message("hello")
        return "done"

    assert await child.run(work) == "done"


@pytest.mark.asyncio
async def test_null_job_handle_reraises():
    handle = null_job_handle()

    async def work(j):
        raise Unsupported()

    with pytest.raises(Unsupported):
        await handle.run(work)


def test_cannot_create_meta_job():
    with pytest.raises(UnknownError, match="Cannot create a meta job!"):
        null_job_handle().create_job(JobType.META, [])


@pytest.mark.asyncio
async def test_created_job_metadata():
    monitor, meta = _monitor()

    async def meta_func(job):
        job.create_job(JobType.PUSH, ["alpha", "beta"])

    _, monitor = await asyncio.gather(meta.run(meta_func), monitor.run_until_completion())
    pushes = [j for j in monitor.jobs.values() if j.job_type is JobType.PUSH]
    assert len(pushes) == 1
    assert pushes[0].nodes == ["alpha", "beta"]
    assert pushes[0].state is JobState.WAITING