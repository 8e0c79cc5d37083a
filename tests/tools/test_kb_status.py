"""Tests for the kb_status tool logic."""

import pytest

from autodidact.acquire.scheduler import IMPROVE
from autodidact.tools.kb_status import collect_status


class StubScheduler:
    def status(self):
        return {IMPROVE: {"running": False, "runs": 2}}


@pytest.mark.asyncio
async def test_status_without_optional_components(store, revisions):
    status = await collect_status(store, revisions)
    assert status["knowledge"]["total_entries"] == 0
    assert status["latest_revision"] is None
    assert status["cycles"] is None
    assert status["deploying"] is None


@pytest.mark.asyncio
async def test_status_reports_latest_revision_and_cycles(store, revisions):
    await store.upsert("Python", "wiki", "text")
    await revisions.create(1, "code", "Self-improvement update: rust")

    status = await collect_status(store, revisions, StubScheduler())

    assert status["knowledge"]["topics"] == 1
    assert status["latest_revision"].startswith("v1 ")
    assert status["latest_revision"].endswith("Self-improvement update: rust")
    assert status["cycles"][IMPROVE]["runs"] == 2
