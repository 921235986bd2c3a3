"""Tests for workspace confinement and the process runner."""

import asyncio
import sys

import pytest
from pydantic import ValidationError

from toolwarden.tools.sandbox import ProcessRunner, RunnerConfig, Workspace


class TestWorkspace:
    def test_relative_paths_resolve_under_root(self, tmp_path):
        ws = Workspace(tmp_path)
        assert ws.resolve("a/b.txt") == tmp_path.resolve() / "a" / "b.txt"

    def test_empty_path_is_root(self, tmp_path):
        ws = Workspace(tmp_path)
        assert ws.resolve(None) == ws.root
        assert ws.resolve("") == ws.root

    def test_absolute_path_inside_root(self, tmp_path):
        ws = Workspace(tmp_path)
        assert ws.resolve(str(tmp_path / "x")) == ws.root / "x"

    @pytest.mark.parametrize("path", ["..", "../sibling", "a/../../b", "/etc/passwd"])
    def test_escapes_are_refused(self, tmp_path, path):
        ws = Workspace(tmp_path / "root")
        with pytest.raises(PermissionError, match="outside the workspace"):
            ws.resolve(path)

    def test_symlink_escape_is_refused(self, tmp_path):
        (tmp_path / "root").mkdir()
        (tmp_path / "outside").mkdir()
        (tmp_path / "root" / "link").symlink_to(tmp_path / "outside")
        ws = Workspace(tmp_path / "root")
        with pytest.raises(PermissionError):
            ws.resolve("link/file.txt")

    def test_validate_path(self, tmp_path):
        ws = Workspace(tmp_path)
        assert ws.validate_path("ok.txt") == (True, "Path is within the workspace")
        valid, reason = ws.validate_path("../nope")
        assert not valid
        assert "outside" in reason

    def test_relative(self, tmp_path):
        ws = Workspace(tmp_path)
        assert ws.relative(ws.root) == "."
        assert ws.relative(ws.root / "a") == "a"


class TestRunnerConfig:
    def test_defaults(self):
        config = RunnerConfig()
        assert config.timeout_seconds == 120.0
        assert config.max_output_bytes == 65536

    def test_output_cap_has_a_floor(self):
        with pytest.raises(ValidationError):
            RunnerConfig(max_output_bytes=10)


class TestProcessRunner:
    @pytest.mark.asyncio
    async def test_captures_output(self, runner, tmp_path):
        result = await runner.run_shell("echo out; echo err >&2", cwd=tmp_path)
        assert result.exit_code == 0
        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.succeeded
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_exit_code(self, runner):
        result = await runner.run_shell("exit 7")
        assert result.exit_code == 7
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, runner):
        result = await runner.run_shell("exec sleep 5", timeout=0.2)
        assert result.timed_out
        assert result.exit_code is None
        assert result.duration_ms < 5000

    @pytest.mark.asyncio
    async def test_output_is_truncated(self):
        runner = ProcessRunner(RunnerConfig(max_output_bytes=1024))
        result = await runner.run_exec([sys.executable, "-c", "print('x' * 5000)"])
        assert result.truncated
        assert result.stdout.endswith("[TRUNCATED at 1024 bytes]")
        assert result.stdout.count("x") == 1024

    @pytest.mark.asyncio
    async def test_run_exec_does_not_use_a_shell(self, runner, tmp_path):
        result = await runner.run_exec(["echo", "$HOME; rm -rf /"], cwd=tmp_path)
        assert result.stdout == "$HOME; rm -rf /\n"

    @pytest.mark.asyncio
    async def test_missing_executable(self, runner):
        with pytest.raises(FileNotFoundError):
            await runner.run_exec(["definitely-not-a-real-binary-xyz"])

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, runner):
        task = asyncio.create_task(runner.run_shell("exec sleep 5"))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
