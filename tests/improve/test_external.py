"""Tests for the source-control and supervisor collaborators."""

import asyncio
import shutil
import subprocess
import sys

import pytest

from autodidact.improve.external import (
    CommandSupervisor,
    GitSourceControl,
    NullSourceControl,
    ProcessSupervisor,
    SourceControl,
    run_command,
)


@pytest.mark.asyncio
async def test_run_command_captures_output():
    status, output = await run_command([sys.executable, "-c", "print('restarted')"])
    assert status == 0
    assert output == "restarted"


@pytest.mark.asyncio
async def test_run_command_missing_binary():
    status, _ = await run_command(["definitely-not-a-real-binary-xyz"])
    assert status == -1


@pytest.mark.asyncio
async def test_run_command_timeout():
    status, output = await run_command(
        [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5
    )
    assert status == -1
    assert "timed out" in output


@pytest.mark.asyncio
async def test_run_command_cancelled_kills_process(monkeypatch):
    started: list[asyncio.subprocess.Process] = []
    spawn = asyncio.create_subprocess_exec

    async def recording_spawn(*args, **kwargs):
        proc = await spawn(*args, **kwargs)
        started.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_spawn)
    task = asyncio.create_task(
        run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=60)
    )
    while not started:
        await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert started[0].returncode is not None


@pytest.mark.asyncio
async def test_supervisor_success_and_failure():
    assert await CommandSupervisor([sys.executable, "-c", "pass"]).restart() is True
    assert await CommandSupervisor([sys.executable, "-c", "raise SystemExit(1)"]).restart() is False


@pytest.mark.asyncio
async def test_supervisor_without_command():
    assert await CommandSupervisor([]).restart() is False


@pytest.mark.asyncio
async def test_null_source_control(tmp_path):
    assert await NullSourceControl().publish(tmp_path / "p.py", "msg") is False


def test_protocol_conformance(tmp_path):
    assert isinstance(CommandSupervisor(["true"]), ProcessSupervisor)
    assert isinstance(GitSourceControl(tmp_path), SourceControl)
    assert isinstance(NullSourceControl(), SourceControl)


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
async def test_git_publish_commits_then_fails_push_without_remote(tmp_path):
    """Commit succeeds locally; the push to a missing remote is reported, not raised."""
    subprocess.run(["git", "init", "-q", str(tmp_path)], check=True)
    git = ["git", "-C", str(tmp_path)]
    subprocess.run([*git, "config", "user.email", "kb@example.com"], check=True)
    subprocess.run([*git, "config", "user.name", "kb"], check=True)
    program = tmp_path / "agent_program.py"
    program.write_text("print('v1')\n")

    published = await GitSourceControl(tmp_path, remote="nowhere").publish(program, "v1")

    assert published is False
    log = subprocess.run(
        ["git", "-C", str(tmp_path), "log", "--format=%s"],
        capture_output=True,
        text=True,
        check=True,
    )
    assert log.stdout.strip() == "v1"
