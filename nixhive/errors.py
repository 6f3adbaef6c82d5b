"""Error types raised by the deployment tool."""

from __future__ import annotations

from typing import Any


class DeployError(Exception):
    """Base class of every error raised by the deployment tool."""

    default_message = "Deployment error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class IoError(DeployError):
    """An operating-system level I/O failure."""

    def __init__(self, error: BaseException) -> None:
        self.error = error
        super().__init__(f"I/O Error: {error}")


class BadOutput(DeployError):
    """Nix produced output that could not be understood."""

    def __init__(self, output: str) -> None:
        self.output = output
        super().__init__(f"Nix returned invalid response: {output}")


class ChildFailure(DeployError):
    """A child process exited with a non-zero status."""

    def __init__(self, exit_code: int) -> None:
        self.exit_code = exit_code
        super().__init__(f"Child process exited with error code: {exit_code}")


class ChildKilled(DeployError):
    """A child process was terminated by a signal."""

    def __init__(self, signal: int) -> None:
        self.signal = signal
        super().__init__(f"Child process was killed by signal {signal}")


class Unsupported(DeployError):
    default_message = "This operation is not supported"


class InvalidStorePath(DeployError):
    default_message = "Invalid Nix store path"


class ValidationError(DeployError):
    """Configuration values failed validation."""

    def __init__(self, errors: Any) -> None:
        self.errors = errors
        super().__init__("Validation error")


class AttributeEvaluationError(DeployError):
    default_message = "Some attributes failed to evaluate"


class KeyProcessingError(DeployError):
    """A secret key could not be processed."""

    def __init__(self, name: str, error: Any) -> None:
        self.name = name
        self.error = error
        super().__init__(f'Error processing key "{name}": {error}')


class NotADerivation(DeployError):
    """A store path was expected to be a derivation but is not."""

    def __init__(self, store_path: Any) -> None:
        self.store_path = store_path
        super().__init__(f"Store path {store_path!r} is not a derivation")


class InvalidProfile(DeployError):
    default_message = "Invalid NixOS system profile"


class ActiveProfileUnknown(DeployError):
    """The profile active on a host is not known locally."""

    def __init__(self, profile: Any) -> None:
        self.profile = profile
        super().__init__(f"Unknown active profile: {profile!r}")


class ActiveProfileUnexpected(DeployError):
    """The profile active on a host is not the one expected."""

    def __init__(self, profile: Any) -> None:
        self.profile = profile
        super().__init__(f"Unexpected active profile: {profile!r}")


class FailedToGetCurrentProfile(DeployError):
    default_message = "Could not determine current profile"


class NoFlakesSupport(DeployError):
    default_message = "Current Nix version does not support Flakes"


class NoTargetHost(DeployError):
    default_message = "Don't know how to connect to the node"


class EmptyNodeName(DeployError):
    default_message = "Node name cannot be empty"


class EmptyFilterRule(DeployError):
    default_message = "Filter rule cannot be empty"


class DeploymentAlreadyExecuted(DeployError):
    default_message = "Deployment already executed"


class UnknownError(DeployError):
    """An error with only a textual description."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Unknown error: {message}")


class ExecError(DeployError):
    """A remote command failed on some hosts."""

    def __init__(self, n_hosts: int) -> None:
        self.n_hosts = n_hosts
        super().__init__(f"Exec failed on {n_hosts} hosts")


def from_returncode(returncode: int) -> DeployError:
    """Builds the error describing a child process's return code.

    Negative return codes mean the process was killed by a signal.
    """
    if returncode < 0:
        return ChildKilled(-returncode)
    return ChildFailure(returncode)


def unknown(error: BaseException) -> UnknownError:
    """Wraps an arbitrary exception as an UnknownError."""
    return UnknownError(str(error))