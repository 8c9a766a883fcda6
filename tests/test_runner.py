import sys

import pytest

from compatlab.domain import TestStepError
from compatlab.infrastructure import CommandRunner, UnconfiguredRunner


def _script_runner(source: str) -> CommandRunner:
    return CommandRunner([sys.executable, "-c", source])


def test_parse_issues_collects_prefixed_lines():
    stdout = "building\nCOMPAT: missing-symbol-X\n  COMPAT:abi-break\nCOMPAT: missing-symbol-X\nCOMPAT:   \n"

    assert CommandRunner.parse_issues(stdout) == ["missing-symbol-X", "abi-break"]


def test_empty_command_is_rejected():
    with pytest.raises(ValueError):
        CommandRunner([])


@pytest.mark.asyncio
async def test_exit_zero_passes(tmp_path):
    package = tmp_path / "pkg.tgz"
    package.write_bytes(b"data")
    runner = _script_runner("import sys, pathlib; sys.exit(0 if pathlib.Path(sys.argv[1]).exists() else 3)")

    result = await runner.run(str(package))

    assert result.passed is True
    assert result.details["exit_code"] == 0


@pytest.mark.asyncio
async def test_exit_one_fails_with_issues(tmp_path):
    runner = _script_runner("print('COMPAT: missing-symbol-X'); print('noise'); raise SystemExit(1)")

    result = await runner.run(str(tmp_path / "pkg.tgz"))

    assert result.passed is False
    assert result.issues == ["missing-symbol-X"]


@pytest.mark.asyncio
async def test_other_exit_codes_are_step_errors(tmp_path):
    runner = _script_runner("import sys; sys.stderr.write('boom'); sys.exit(2)")

    with pytest.raises(TestStepError, match="boom"):
        await runner.run(str(tmp_path / "pkg.tgz"))


@pytest.mark.asyncio
async def test_missing_executable_is_step_error(tmp_path):
    runner = CommandRunner([str(tmp_path / "no-such-binary")])

    with pytest.raises(TestStepError):
        await runner.run(str(tmp_path / "pkg.tgz"))


@pytest.mark.asyncio
async def test_unconfigured_runner_raises():
    with pytest.raises(TestStepError):
        await UnconfiguredRunner().run("/tmp/pkg.tgz")
