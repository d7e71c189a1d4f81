"""Tests for RunExecutor (resolution, deadline, environment, output replay)."""

import io
import os
import shutil
import signal
import subprocess
import sys
import time
from unittest.mock import Mock

import pytest

from deploy_actions.errors import (
    CombinedError,
    DeadlineExceededError,
    PathResolutionError,
    ProcessExitError,
)
from deploy_actions.executors import process
from deploy_actions.executors.process import (
    RunExecutor,
    merge_environment,
    replay_output,
    resolve_executable,
)
from deploy_actions.variants import Action, Copy, Run

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX utilities")


def _run(path, *query, timeout=0, environment=()):
    return Action(
        name="run",
        variant=Run(path=path, query=list(query), timeout=timeout, environment=list(environment)),
    )


class BrokenStream(io.StringIO):
    def write(self, text):
        raise OSError("broken pipe")


@pytest.fixture
def streams():
    return io.StringIO(), io.StringIO()


@pytest.fixture
def executor(streams):
    stdout, stderr = streams
    return RunExecutor(stdout=stdout, stderr=stderr, logger=Mock())


class TestResolveExecutable:
    """Test suite for resolve_executable()."""

    def test_bare_name_uses_search_path(self):
        assert resolve_executable("sh") == shutil.which("sh")

    def test_bare_name_not_found(self):
        with pytest.raises(PathResolutionError) as excinfo:
            resolve_executable("definitely-not-a-real-program-xyz")
        assert excinfo.value.path == "definitely-not-a-real-program-xyz"

    def test_relative_path_joined_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        script = tmp_path / "bin" / "tool.sh"
        script.parent.mkdir()
        script.write_text("#!/bin/sh\necho relative\n")
        script.chmod(0o755)

        assert resolve_executable("bin/tool.sh") == os.path.join(os.getcwd(), "bin/tool.sh")

    def test_relative_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(PathResolutionError):
            resolve_executable("./missing/tool")


class TestMergeEnvironment:
    """Test suite for merge_environment()."""

    def test_overrides_applied_in_order(self):
        env = merge_environment({"A": "0", "B": "keep"}, ["A=1", "C=x=y", "A=2"])
        assert env == {"A": "2", "B": "keep", "C": "x=y"}

    def test_base_not_mutated(self):
        base = {"A": "0"}
        merge_environment(base, ["A=1"])
        assert base == {"A": "0"}

    def test_empty_value_allowed(self):
        assert merge_environment({}, ["OK="]) == {"OK": ""}

    @pytest.mark.parametrize("entry", ["NOEQUALS", "=value"])
    def test_malformed_entry_rejected(self, entry):
        with pytest.raises(ValueError):
            merge_environment({}, [entry])


class TestReplayOutput:
    """Test suite for replay_output()."""

    def test_text_stream(self):
        stream = io.StringIO()
        assert replay_output(b"hi\n", stream) is None
        assert stream.getvalue() == "hi\n"

    def test_binary_buffer_preferred(self):
        raw = io.BytesIO()
        stream = io.TextIOWrapper(raw, encoding="utf-8")
        assert replay_output(b"\xffraw", stream) is None
        assert raw.getvalue() == b"\xffraw"

    def test_empty_output_writes_nothing(self):
        assert replay_output(b"", BrokenStream()) is None

    def test_failure_returned_not_raised(self):
        error = replay_output(b"data", BrokenStream())
        assert isinstance(error, OSError)

    def test_closed_stream(self):
        stream = io.StringIO()
        stream.close()
        assert isinstance(replay_output(b"data", stream), ValueError)


class TestRunExecutor:
    """Test suite for RunExecutor.execute()."""

    def test_echo_output_replayed(self, executor, streams):
        """Test that stdout is captured and replayed after a zero exit."""
        action = _run("echo", "hi")

        executor.execute(action, ".")

        assert streams[0].getvalue() == "hi\n"
        assert streams[1].getvalue() == ""
        assert action.variant.path == shutil.which("echo")

    def test_replays_to_process_streams_by_default(self, capsys):
        RunExecutor(logger=Mock()).execute(_run("echo", "hi"), ".")
        captured = capsys.readouterr()
        assert captured.out == "hi\n"

    def test_query_passed_unmodified(self, executor, streams):
        executor.execute(_run("printf", "%s|", "a b", "", "*"), ".")
        assert streams[0].getvalue() == "a b||*|"

    def test_separate_buffers(self, executor, streams):
        executor.execute(_run("sh", "-c", "echo out; echo err >&2"), ".")
        assert streams[0].getvalue() == "out\n"
        assert streams[1].getvalue() == "err\n"

    def test_deadline_kills_process(self, executor):
        """Test that a timeout terminates the program and reports a deadline error."""
        start = time.monotonic()
        with pytest.raises(CombinedError) as excinfo:
            executor.execute(_run("sleep", "5", timeout=1), ".")
        elapsed = time.monotonic() - start

        assert elapsed < 4
        deadline = excinfo.value.find(DeadlineExceededError)
        assert deadline is not None
        assert deadline.timeout == 1
        assert excinfo.value.find(ProcessExitError) is None

    def test_deadline_kills_forked_children(self, executor, streams):
        """Test that a shell's child holding the pipes does not delay the deadline."""
        start = time.monotonic()
        with pytest.raises(CombinedError) as excinfo:
            executor.execute(_run("sh", "-c", "sleep 5; echo done", timeout=1), ".")
        elapsed = time.monotonic() - start

        assert elapsed < 2.5
        assert excinfo.value.find(DeadlineExceededError) is not None
        assert "done" not in streams[0].getvalue()

    @pytest.mark.skipif(shutil.which("setsid") is None, reason="needs setsid")
    def test_deadline_with_escaped_descendant(self, executor, streams):
        """Test that a descendant outside the process group cannot hold the call open."""
        start = time.monotonic()
        with pytest.raises(CombinedError) as excinfo:
            executor.execute(
                _run("sh", "-c", "echo early; setsid sleep 5 & sleep 5", timeout=1), "."
            )
        elapsed = time.monotonic() - start

        assert elapsed < 1 + process.KILL_GRACE + 1.5
        assert excinfo.value.find(DeadlineExceededError) is not None
        assert streams[0].getvalue() == "early\n"

    def test_interrupted_wait_kills_and_reaps(self, executor, monkeypatch):
        """Test that an exception while waiting leaves no running child behind."""
        spawned = []

        class InterruptedPopen(subprocess.Popen):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                spawned.append(self)

            def communicate(self, *args, **kwargs):
                raise KeyboardInterrupt

        monkeypatch.setattr(process.subprocess, "Popen", InterruptedPopen)

        with pytest.raises(KeyboardInterrupt):
            executor.execute(_run("sleep", "5"), ".")

        assert len(spawned) == 1
        assert spawned[0].returncode == -signal.SIGKILL

    def test_output_before_deadline_still_replayed(self, executor, streams):
        with pytest.raises(CombinedError):
            executor.execute(_run("sh", "-c", "echo started; exec sleep 5", timeout=1), ".")
        assert streams[0].getvalue() == "started\n"

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_non_positive_timeout_is_unbounded(self, executor, streams, timeout):
        executor.execute(_run("sh", "-c", "sleep 0.2; echo done", timeout=timeout), ".")
        assert streams[0].getvalue() == "done\n"

    def test_non_zero_exit(self, executor, streams):
        """Test that a failing program reports its status and still replays stderr."""
        with pytest.raises(CombinedError) as excinfo:
            executor.execute(_run("sh", "-c", "echo oops >&2; exit 3"), ".")

        exit_error = excinfo.value.find(ProcessExitError)
        assert exit_error is not None
        assert exit_error.returncode == 3
        assert str(exit_error) == "exit status 3"
        assert streams[1].getvalue() == "oops\n"

    def test_environment_inherited_and_overridden(self, executor, streams, monkeypatch):
        monkeypatch.setenv("DEPLOY_INHERITED", "yes")
        action = _run(
            "sh",
            "-c",
            'echo "$DEPLOY_INHERITED $DEPLOY_GREETING"',
            environment=["DEPLOY_GREETING=first", "DEPLOY_GREETING=second"],
        )

        executor.execute(action, ".")

        assert streams[0].getvalue() == "yes second\n"
        assert "DEPLOY_GREETING" not in os.environ

    def test_relative_program(self, executor, streams, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        script = tmp_path / "bin" / "tool.sh"
        script.parent.mkdir()
        script.write_text("#!/bin/sh\necho relative \"$1\"\n")
        script.chmod(0o755)
        action = _run("bin/tool.sh", "arg")

        executor.execute(action, ".")

        assert streams[0].getvalue() == "relative arg\n"
        assert action.variant.path == os.path.join(os.getcwd(), "bin/tool.sh")

    def test_unresolvable_path_spawns_nothing(self, executor, monkeypatch):
        """Test that resolution fails before any subprocess is started."""
        popen = Mock()
        monkeypatch.setattr(process.subprocess, "Popen", popen)
        action = _run("definitely-not-a-real-program-xyz")

        with pytest.raises(PathResolutionError):
            executor.execute(action, ".")

        popen.assert_not_called()
        assert action.variant.path == "definitely-not-a-real-program-xyz"

    def test_unresolvable_relative_path_spawns_nothing(self, executor, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        popen = Mock()
        monkeypatch.setattr(process.subprocess, "Popen", popen)

        with pytest.raises(PathResolutionError):
            executor.execute(_run("./scripts/missing.sh"), ".")

        popen.assert_not_called()

    def test_replay_failure_after_success(self, streams):
        """Test that a clean exit with a failed replay is still an error."""
        executor = RunExecutor(stdout=BrokenStream(), stderr=streams[1], logger=Mock())

        with pytest.raises(CombinedError) as excinfo:
            executor.execute(_run("echo", "hi"), ".")

        assert len(excinfo.value.causes) == 1
        assert isinstance(excinfo.value.causes[0], OSError)
        assert excinfo.value.find(ProcessExitError) is None

    def test_all_causes_joined(self):
        """Test that exit status and both replay failures are reported together."""
        executor = RunExecutor(stdout=BrokenStream(), stderr=BrokenStream(), logger=Mock())

        with pytest.raises(CombinedError) as excinfo:
            executor.execute(_run("sh", "-c", "echo out; echo err >&2; exit 1"), ".")

        causes = excinfo.value.causes
        assert len(causes) == 3
        assert isinstance(causes[0], ProcessExitError)
        assert all(isinstance(cause, OSError) for cause in causes[1:])
        assert str(excinfo.value) == "exit status 1\nbroken pipe\nbroken pipe"

    def test_rejects_other_variants(self, executor):
        with pytest.raises(TypeError):
            executor.execute(Action(name="copy", variant=Copy(source="a")), ".")
