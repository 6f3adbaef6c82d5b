"""Deployment options."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class EvaluatorType(enum.Enum):
    """Which evaluator to use."""

    CHUNKED = "chunked"
    STREAMING = "streaming"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> EvaluatorType:
        """Parses an evaluator name."""
        for evaluator in cls:
            if evaluator.value == value:
                return evaluator
        raise ValueError(
            f"invalid evaluator {value!r}: expected one of "
            + ", ".join(e.value for e in cls)
        )


@dataclass
class Options:
    """Options for a deployment."""

    substituters_push: bool = True
    """Use binary caches when copying closures to remote hosts."""

    gzip: bool = True
    """Use gzip when copying closures to remote hosts."""

    upload_keys: bool = True
    """Upload keys when deploying."""

    reboot: bool = False
    """Reboot the hosts after activation."""

    create_gc_roots: bool = False
    """Create GC roots for node profiles under the hive's context directory."""

    force_build_on_target: bool | None = None
    """Override the per-node setting to build on the nodes themselves."""

    force_replace_unknown_profiles: bool = False
    """Ignore the node-level replaceUnknownProfiles option."""

    evaluator: EvaluatorType = EvaluatorType.CHUNKED
    """Which evaluator to use (experimental)."""