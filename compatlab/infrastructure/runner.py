"""Compatibility-test step integration hooks.

The dispatcher treats the actual compatibility test as an opaque external
step. This module defines the contract it calls, a command-line backed
implementation and an unconfigured fallback that fails every job as
``errored``. Deployments install a runner with ``configure_runner`` during
application start-up.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, Sequence

from compatlab.domain import TestStepError, TestStepResult

ISSUE_PREFIX = "COMPAT:"


class CompatibilityRunner(Protocol):
    """Contract for test-step integrations."""

    async def run(self, package_path: str) -> TestStepResult:
        """Run the compatibility test against the package at ``package_path``."""


class UnconfiguredRunner:
    """Fallback runner used when no test command is configured."""

    async def run(self, package_path: str) -> TestStepResult:
        raise TestStepError("compatibility runner not configured")


class CommandRunner:
    """Runs an external command with the package path as its last argument.

    Exit code ``0`` means the package passed, ``1`` means it failed (every
    stdout line starting with ``COMPAT:`` is reported as an issue) and any
    other code is an execution error.
    """

    def __init__(self, command: Sequence[str], *, cwd: Path | None = None) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._cwd = cwd

    @staticmethod
    def parse_issues(stdout: str) -> list[str]:
        issues: list[str] = []
        for line in stdout.splitlines():
            stripped = line.strip()
            if not stripped.startswith(ISSUE_PREFIX):
                continue
            text = stripped[len(ISSUE_PREFIX):].strip()
            if text and text not in issues:
                issues.append(text)
        return issues

    async def run(self, package_path: str) -> TestStepResult:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                package_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self._cwd) if self._cwd else None,
            )
        except OSError as exc:
            raise TestStepError(f"could not start {self._command[0]}: {exc}") from exc

        try:
            stdout_raw, stderr_raw = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        stdout = stdout_raw.decode("utf-8", errors="replace")
        stderr = stderr_raw.decode("utf-8", errors="replace")
        details = {"exit_code": process.returncode, "stderr": stderr[-2000:]}

        if process.returncode == 0:
            return TestStepResult(passed=True, details=details)
        if process.returncode == 1:
            return TestStepResult(passed=False, issues=self.parse_issues(stdout), details=details)
        raise TestStepError(f"test command exited with {process.returncode}: {stderr.strip()[-500:]}")


_runner: CompatibilityRunner = UnconfiguredRunner()


def configure_runner(runner: CompatibilityRunner) -> None:
    """Install the runner used by the dispatcher."""

    global _runner
    _runner = runner


def get_runner() -> CompatibilityRunner:
    """Return the currently configured runner."""

    return _runner
