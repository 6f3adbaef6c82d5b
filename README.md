# nixhive

Asyncio building blocks for deploying NixOS configurations to many hosts.

## Modules

- `nixhive.goal`: the `Goal` enum (`build`, `push`, `switch`, `boot`, `test`,
  `dry-activate`, `keys`). `Goal.parse` reads the spelling above and raises
  `ValueError` for anything else. Each goal answers `requires_activation()`,
  `requires_target_host()`, `should_switch_profile()` and
  `persists_after_reboot()`. It also provides `activation_name()`, which is
  `None` for `build` and `push`, and `success_str()`.
- `nixhive.limits`: `ParallelismLimit` holds two asyncio semaphores,
  `evaluation` (1 by default) and `apply` (10 by default). Use
  `set_apply_limit` to change the apply limit. `EvaluationNodeLimit.parse`
  accepts `auto`, `0` or a positive number. `get_limit()` returns `None` for
  `0`, which means no limit, and returns the number you gave otherwise. For
  `auto` it estimates a limit from the available memory: 1 GiB is reserved
  and each host is counted at 512 MiB, with a minimum of 1. If the memory
  cannot be read, the limit is 10.
- `nixhive.options`: the `Options` dataclass of deployment settings, and
  `EvaluatorType` (`chunked` or `streaming`), parsed with
  `EvaluatorType.parse`.
- `nixhive.expression`: the `NixExpression` base class. `nix_quote` turns
  text into a Nix string literal and escapes `\`, `"` and `${`.
  `SerializedNixExpression` embeds JSON data through `builtins.fromJSON`.
  `as_expression` treats a plain string as raw Nix code.
- `nixhive.jobstate`: job states, job types, progress lines, event payloads
  and job statistics. It also holds the text that describes jobs, for example
  `describe_node_list(["alpha", "beta", "gamma"])` returns
  `"alpha, beta, and gamma"`.
- `nixhive.job`: the job monitor. `JobMonitor.create(progress)` returns a
  monitor and the `MetaJobHandle` of its meta job. A `JobHandle` creates
  child jobs. It reports states, stdout and stderr lines, messages, no-ops and
  failures, and `run`/`run_waiting` report the outcome of a coroutine
  automatically. `progress` is an optional callable that receives
  `ProgressMessage` values. When the meta job ends, the monitor logs the last
  20 events of each failed job through `logging`. `null_job_handle()` returns
  a handle that only logs at debug level.
- `nixhive.evaluator`: the `DrvSetEvaluator` interface. Its results are
  `AttributeOutput`, `AttributeFailure` or `GlobalFailure`.
- `nixhive.nix_eval_jobs`: `NixEvalJobs` is an evaluator that runs
  `nix-eval-jobs` and yields results as they arrive. The stderr of the process
  is forwarded to the job handle. The binary can be pinned with the
  `NIX_EVAL_JOBS` environment variable (`get_pinned_nix_eval_jobs()`).
  `parse_eval_line` parses a single output line.
- `nixhive.flake`: `Flake.from_dir` and `Flake.from_uri` resolve metadata
  with `nix flake metadata --json`. `FlakeMetadata.from_json` parses that
  output, and `lock_flake_quiet` runs `nix flake lock`.
- `nixhive.errors`: the `DeployError` hierarchy. Every failure in the package
  is raised as a subclass of it. `from_returncode` maps a child's return
  code to `ChildFailure` or, for negative codes, to `ChildKilled`.

## Installation

```
pip install nixhive
```

The evaluator and the flake helpers need `nix` on `PATH`, and the evaluator
also needs `nix-eval-jobs`.

## Examples

```python
from nixhive.goal import Goal
from nixhive.expression import nix_quote

goal = Goal.parse("dry-activate")
assert goal.requires_activation()
print(nix_quote('say "${hi}"'))   # "say \"\${hi}\""
```

This example runs a job under the monitor:

```python
import asyncio
from nixhive.job import JobMonitor
from nixhive.jobstate import JobType

async def main():
    monitor, meta = JobMonitor.create(None)

    async def work(handle):
        job = handle.create_job(JobType.EVALUATE, ["alpha"])
        return await job.run(lambda j: asyncio.sleep(0, result=42))

    result, _ = await asyncio.gather(meta.run(work), monitor.run_until_completion())
    print(result)   # 42

asyncio.run(main())
```

## What it does not do

This is a library. It has no command-line tool, and it does not read hive or
flake configurations of nodes. It does not connect to hosts. Building,
pushing closures, uploading keys, activating and rebooting are left to the
caller, and so is the orchestration of a whole deployment. The job monitor
emits `ProgressMessage` values but does not draw them on a terminal.

## Running the tests

```
pip install -e .[test]
pytest
```