"""Nix Flake utilities."""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import BadOutput, IoError, from_returncode

_FEATURES = ["--extra-experimental-features", "nix-command flakes"]


@dataclass(frozen=True)
class FlakeMetadata:
    """The output of ``nix flake metadata --json``."""

    resolved_url: str
    url: str

    @classmethod
    def from_json(cls, data: bytes | str) -> FlakeMetadata:
        """Parses flake metadata, raising BadOutput on unexpected output."""
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            raise BadOutput(text) from None
        if not isinstance(parsed, dict):
            raise BadOutput(text)
        resolved_url = parsed.get("resolvedUrl")
        url = parsed.get("url")
        if not isinstance(resolved_url, str) or not isinstance(url, str):
            raise BadOutput(text)
        return cls(resolved_url=resolved_url, url=url)


async def _resolve(flake: str) -> FlakeMetadata:
    try:
        proc = await asyncio.create_subprocess_exec(
            "nix",
            "flake",
            "metadata",
            "--json",
            *_FEATURES,
            flake,
            stdout=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        raise IoError(e) from e

    if proc.returncode != 0:
        raise from_returncode(proc.returncode)
    return FlakeMetadata.from_json(stdout)


class Flake:
    """A Nix Flake."""

    def __init__(self, metadata: FlakeMetadata, local_dir: Path | None = None) -> None:
        self.metadata = metadata
        self._local_dir = local_dir

    def __repr__(self) -> str:
        return f"Flake(uri={self.uri()!r}, local_dir={self._local_dir!r})"

    @classmethod
    async def from_dir(cls, directory: str | os.PathLike) -> Flake:
        """Creates a flake from a local directory, resolving its URL."""
        path = Path(directory)
        metadata = await _resolve(os.fspath(path))
        return cls(metadata, path)

    @classmethod
    async def from_uri(cls, uri: str) -> Flake:
        """Creates a flake from a flake URI."""
        metadata = await _resolve(uri)
        return cls(metadata)

    def uri(self) -> str:
        """Returns the resolved URI."""
        return self.metadata.resolved_url

    def locked_uri(self) -> str:
        """Returns the locked URI; not locked if the git workspace is dirty."""
        return self.metadata.url

    def local_dir(self) -> Path | None:
        """Returns the local directory, if the flake is local."""
        return self._local_dir


async def lock_flake_quiet(uri: str) -> None:
    """Quietly locks the dependencies of a flake."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "nix",
            "flake",
            "lock",
            *_FEATURES,
            uri,
            stderr=asyncio.subprocess.DEVNULL,
        )
        returncode = await proc.wait()
    except OSError as e:
        raise IoError(e) from e

    if returncode != 0:
        raise from_returncode(returncode)