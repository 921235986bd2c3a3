"""
Toolwarden Controlled Execution Environment

Provides the execution controls built-in tools rely on:
- Workspace path confinement (every tool path resolves under one root)
- Subprocess execution with timeout enforcement + process kill
- Output size limits (configurable max bytes)
- Child process kill when the awaiting task is cancelled

Note: This is NOT a sandbox. Child processes run as the same user with
full filesystem and network access; confinement applies to the paths the
built-in file tools accept, not to what a shell command does.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from pydantic import BaseModel, Field

from toolwarden.logging import get_logger

logger = get_logger("toolwarden.tools.sandbox")


class RunnerConfig(BaseModel):
    """Limits applied to every subprocess."""

    timeout_seconds: float = Field(default=120.0, gt=0.0, le=3600.0)
    max_output_bytes: int = Field(default=65536, ge=1024, le=16 * 1024 * 1024)


class ProcessResult(BaseModel):
    """Captured outcome of one subprocess."""

    command: str
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    truncated: bool = False
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0


class Workspace:
    """Filesystem root that all tool paths are confined to."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str | None = None) -> Path:
        """Resolve ``path`` (relative to the root, or absolute) inside the workspace.

        Raises:
            PermissionError: If the resolved path escapes the workspace root.
        """
        if not path:
            return self.root
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise PermissionError(f"Path {path!r} is outside the workspace root {self.root}")
        return resolved

    def validate_path(self, path: str) -> tuple[bool, str]:
        """Validate a path against the workspace root.

        Returns (is_valid, reason).
        """
        try:
            self.resolve(path)
        except PermissionError as e:
            return False, str(e)
        return True, "Path is within the workspace"

    def relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root)) or "."
        except ValueError:
            return str(path)


class ProcessRunner:
    """Runs subprocesses with timeout, output cap and cancellation kill."""

    def __init__(self, config: RunnerConfig | None = None):
        self._config = config or RunnerConfig()

    @property
    def config(self) -> RunnerConfig:
        return self._config

    async def run_shell(
        self,
        command: str,
        cwd: str | Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run ``command`` through ``sh -c``."""
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=os.environ.copy(),
        )
        return await self._collect(proc, command, timeout)

    async def run_exec(
        self,
        argv: list[str],
        cwd: str | Path | None = None,
        timeout: float | None = None,
    ) -> ProcessResult:
        """Run a program directly, without a shell."""
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
        return await self._collect(proc, " ".join(argv), timeout)

    async def _collect(
        self,
        proc: asyncio.subprocess.Process,
        command: str,
        timeout: float | None,
    ) -> ProcessResult:
        limit = timeout if timeout is not None else self._config.timeout_seconds
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except TimeoutError:
            await self._kill(proc)
            logger.warning("Process timed out after %ss: %s", limit, command)
            return ProcessResult(
                command=command,
                timed_out=True,
                duration_ms=int((loop.time() - started) * 1000),
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        out, out_truncated = self._decode(stdout)
        err, err_truncated = self._decode(stderr)
        return ProcessResult(
            command=command,
            exit_code=proc.returncode,
            stdout=out,
            stderr=err,
            truncated=out_truncated or err_truncated,
            duration_ms=int((loop.time() - started) * 1000),
        )

    def _decode(self, data: bytes | None) -> tuple[str, bool]:
        if not data:
            return "", False
        cap = self._config.max_output_bytes
        if len(data) <= cap:
            return data.decode("utf-8", errors="replace"), False
        text = data[:cap].decode("utf-8", errors="replace")
        return text + f"\n[TRUNCATED at {cap} bytes]", True

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()
