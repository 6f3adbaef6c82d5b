"""Nix expression serializer."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any


class NixExpression(ABC):
    """A Nix expression that can be evaluated."""

    @abstractmethod
    def expression(self) -> str:
        """Returns the full Nix expression to be evaluated."""

    def requires_flakes(self) -> bool:
        """Returns whether this expression requires the use of flakes."""
        return False


class _RawExpression(NixExpression):
    def __init__(self, text: str) -> None:
        self._text = text

    def expression(self) -> str:
        return self._text


class SerializedNixExpression(NixExpression):
    """A Nix expression holding JSON-serializable data."""

    def __init__(self, data: Any) -> None:
        text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        self._quoted = nix_quote(text)

    def expression(self) -> str:
        return f"(builtins.fromJSON {self._quoted})"


def nix_quote(s: str) -> str:
    """Turns a string into a quoted Nix string expression."""
    inner = s.replace("\\", "\\\\").replace('"', '\\"').replace("${", "\\${")
    return f'"{inner}"'


def as_expression(value: NixExpression | str) -> NixExpression:
    """Returns ``value`` as a NixExpression, treating strings as raw Nix code."""
    if isinstance(value, NixExpression):
        return value
    if isinstance(value, str):
        return _RawExpression(value)
    raise TypeError(f"cannot use {type(value).__name__} as a Nix expression")