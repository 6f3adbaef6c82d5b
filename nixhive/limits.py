"""Parallelism limits."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field

import psutil

# Amount of RAM reserved for the system, in MB.
EVAL_RESERVE_MB = 1024

# Estimated amount of RAM needed to evaluate one host, in MB.
EVAL_PER_HOST_MB = 512

_NUMBER = re.compile(r"\+?[0-9]+", re.ASCII)


@dataclass
class ParallelismLimit:
    """Concurrency limits for evaluation and apply steps."""

    evaluation_limit: int = 1
    apply_limit: int = 10
    evaluation: asyncio.Semaphore = field(init=False, repr=False)
    apply: asyncio.Semaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.evaluation = asyncio.Semaphore(self.evaluation_limit)
        self.apply = asyncio.Semaphore(self.apply_limit)

    def set_apply_limit(self, limit: int) -> None:
        """Replaces the concurrent apply limit."""
        self.apply_limit = limit
        self.apply = asyncio.Semaphore(limit)


@dataclass(frozen=True)
class EvaluationNodeLimit:
    """Maximum number of nodes in each evaluation process.

    ``nodes`` is None for the memory-based heuristic, 0 for no limit,
    and a positive number for a fixed limit.
    """

    nodes: int | None = None

    @classmethod
    def parse(cls, value: str) -> EvaluationNodeLimit:
        """Parses ``auto`` or a non-negative number."""
        if value == "auto":
            return cls(None)
        if not _NUMBER.fullmatch(value):
            raise ValueError("The value must be a valid number or `auto`")
        return cls(int(value))

    def __str__(self) -> str:
        return "auto" if self.nodes is None else str(self.nodes)

    def get_limit(self) -> int | None:
        """Returns the maximum number of hosts per evaluation, or None for no limit."""
        if self.nodes is None:
            return _heuristic_limit()
        if self.nodes == 0:
            return None
        return self.nodes


def _heuristic_limit() -> int:
    try:
        available = psutil.virtual_memory().available
    except Exception:
        return 10

    mb = available // (1024 * 1024)
    if mb >= EVAL_RESERVE_MB:
        mb -= EVAL_RESERVE_MB
    nodes = mb // EVAL_PER_HOST_MB
    return nodes if nodes else 1