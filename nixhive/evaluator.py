"""Evaluators of attribute sets of derivations.

A derivation-set evaluator evaluates an attribute set of derivations and
may emit results as soon as individual attributes finish evaluating.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Union

from .errors import DeployError
from .expression import NixExpression
from .job import JobHandle


@dataclass(frozen=True)
class AttributeOutput:
    """The evaluation output of a single attribute."""

    attribute: str
    drv_path: str


@dataclass(frozen=True)
class AttributeFailure:
    """An error that applies to a single attribute."""

    attribute: str
    error: str


@dataclass(frozen=True)
class GlobalFailure:
    """An error that applies to the whole evaluation."""

    error: DeployError


EvalResult = Union[AttributeOutput, AttributeFailure, GlobalFailure]


class DrvSetEvaluator(ABC):
    """Evaluates an attribute set of derivations."""

    @abstractmethod
    async def evaluate(
        self, expression: NixExpression | str, flags: Iterable[str] = ()
    ) -> AsyncIterator[EvalResult]:
        """Starts the evaluation and returns its results as they come in."""

    def set_eval_limit(self, limit: int) -> None:
        """Sets the maximum number of attributes evaluated at the same time."""

    def set_job(self, job: JobHandle) -> None:
        """Provides a job handle to report to during operations."""