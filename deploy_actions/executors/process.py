"""Run executor: supervise an external program with a deadline and buffered output."""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import sys
import time
from typing import Iterable, Mapping, TextIO

from deploy_actions.errors import (
    DeadlineExceededError,
    PathResolutionError,
    ProcessExitError,
    join_errors,
)
from deploy_actions.executors.base import BaseExecutor
from deploy_actions.logger import DeployLogger
from deploy_actions.variants import Action, Run
from utils.settings_store import deep_log

# Seconds to wait for the pipes to close after a deadline kill.
KILL_GRACE = 0.5


def resolve_executable(path: str, *, search_path: str | None = None) -> str:
    """Locate the program for ``path``.

    A bare name is looked up on the executable search path. Anything with a
    directory component is taken relative to the working directory.
    """
    if os.path.basename(path) == path:
        found = shutil.which(path, path=search_path)
        if not found:
            raise PathResolutionError(path)
        return found

    resolved = os.path.join(os.getcwd(), path)
    if not os.path.isfile(resolved):
        raise PathResolutionError(path, "no such file")
    if not os.access(resolved, os.X_OK):
        raise PathResolutionError(path, "permission denied")
    return resolved


def merge_environment(base: Mapping[str, str], overrides: Iterable[str]) -> dict[str, str]:
    """Return ``base`` with each ``KEY=VALUE`` override applied in order, last one winning."""
    env = dict(base)
    for entry in overrides:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise ValueError(f"malformed environment entry {entry!r}, expected KEY=VALUE")
        env[key] = value
    return env


def kill_process_group(process: subprocess.Popen) -> None:
    """SIGKILL the process and everything it started in its session."""
    if hasattr(os, "killpg"):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    elif process.returncode is None:
        process.kill()


def drain(process: subprocess.Popen, grace: float = KILL_GRACE) -> tuple[bytes, bytes]:
    """Collect what is left in the pipes of a killed process.

    A descendant that escaped the process group can keep the pipes open; after
    ``grace`` seconds the pipes are closed and whatever was read so far is kept.
    """
    try:
        return process.communicate(timeout=grace)
    except subprocess.TimeoutExpired as exc:
        for pipe in (process.stdout, process.stderr):
            if pipe is not None:
                pipe.close()
        process.wait()
        return exc.output or b"", exc.stderr or b""


def replay_output(data: bytes, stream: TextIO) -> Exception | None:
    """Write captured bytes to ``stream``; return the failure instead of raising."""
    if not data:
        return None
    try:
        buffer = getattr(stream, "buffer", None)
        if buffer is not None:
            stream.flush()
            buffer.write(data)
            buffer.flush()
        else:
            stream.write(data.decode("utf-8", errors="replace"))
            stream.flush()
    except (OSError, ValueError) as exc:
        return exc
    return None


class RunExecutor(BaseExecutor):
    """Start a program, wait for it (optionally under a deadline), then replay its output.

    Output is held in memory until the process is gone and only then written to
    ``stdout``/``stderr`` (the interpreter's streams when not given). The wait
    failure and both replay failures are reported together as one
    ``CombinedError``.
    """

    def __init__(
        self,
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        logger: DeployLogger | None = None,
    ) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self.logger = logger or DeployLogger("RUN")

    def execute(self, action: Action, folder: str) -> None:
        run = action.variant
        if not isinstance(run, Run):
            raise TypeError(f"RunExecutor cannot run {action.action_type} actions")

        path = resolve_executable(run.path)
        run = run.model_copy(update={"path": path})
        action.variant = run

        env = merge_environment(os.environ, run.environment)
        argv = [path, *run.query]
        timeout = None if run.unbounded else run.timeout
        deep_log(f"[DEEP][RUN] argv={argv} timeout={timeout} overrides={run.environment}")

        start = time.monotonic()
        wait_error: Exception | None = None
        # Own session, so a deadline kill reaches every descendant holding the pipes.
        with subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            start_new_session=True,
        ) as process:
            try:
                out, err = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                self.logger.warn(f"'{action.name}' exceeded {run.timeout:g}s, killing it")
                kill_process_group(process)
                out, err = drain(process)
                wait_error = DeadlineExceededError(run.timeout)
            except BaseException:
                kill_process_group(process)
                process.wait()
                raise
            else:
                if process.returncode != 0:
                    wait_error = ProcessExitError(process.returncode)
        deep_log(
            f"[DEEP][RUN] pid={process.pid} returncode={process.returncode} "
            f"elapsed_ms={int((time.monotonic() - start) * 1000)}"
        )

        out_error = replay_output(out, self._stdout or sys.stdout)
        err_error = replay_output(err, self._stderr or sys.stderr)

        error = join_errors(wait_error, out_error, err_error)
        if error is not None:
            raise error
