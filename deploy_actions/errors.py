"""Structured errors raised while decoding and executing deploy actions."""

from __future__ import annotations

from typing import Iterable


class ActionError(RuntimeError):
    """Base error for deploy actions, tagged with a short machine-readable code."""

    code = "action_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class ActionDecodeError(ActionError, ValueError):
    """A configuration record could not be turned into an Action."""

    code = "decode_error"


class UnknownActionTypeError(ActionDecodeError):
    code = "unknown_type"

    def __init__(self, action_type: object = None) -> None:
        super().__init__("unknown action type")
        self.action_type = action_type


class PathResolutionError(ActionError):
    """The executable for a run action could not be located."""

    code = "path_not_found"

    def __init__(self, path: str, reason: str = "executable not found on PATH") -> None:
        super().__init__(f"cannot resolve {path!r}: {reason}")
        self.path = path


class DeadlineExceededError(ActionError):
    """The subprocess outlived its timeout and was killed."""

    code = "deadline_exceeded"

    def __init__(self, timeout: float) -> None:
        super().__init__(f"deadline exceeded after {timeout:g}s")
        self.timeout = timeout


class ProcessExitError(ActionError):
    code = "exit_status"

    def __init__(self, returncode: int) -> None:
        if returncode < 0:
            message = f"signal: {-returncode}"
        else:
            message = f"exit status {returncode}"
        super().__init__(message)
        self.returncode = returncode


class CombinedError(ActionError):
    """Several independent failures reported together.

    Each cause stays available on ``causes`` so callers can tell a failed
    subprocess apart from a failed output replay.
    """

    code = "combined"

    def __init__(self, causes: Iterable[BaseException]) -> None:
        self.causes = tuple(causes)
        super().__init__("\n".join(str(cause) for cause in self.causes))

    def find(self, kind: type[BaseException]) -> BaseException | None:
        for cause in self.causes:
            if isinstance(cause, kind):
                return cause
        return None


def join_errors(*errors: BaseException | None) -> CombinedError | None:
    """Combine the non-empty errors, or return None when there are none."""
    causes = [error for error in errors if error is not None]
    if not causes:
        return None
    return CombinedError(causes)
