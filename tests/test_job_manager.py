"""Tests for background analysis job bookkeeping."""

import asyncio
from types import SimpleNamespace

import pytest

from repo_intake.errors import RepositoryNotFoundError
from repo_intake.indexer.job_manager import AnalysisJobManager, JobStatus


@pytest.mark.asyncio
async def test_successful_run_completes_with_fields():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "widgets")

    async def runner(reporter):
        await reporter.update(progress=40, progress_message="Selected 2 files", selection_summary={"selected_files": 2})
        return SimpleNamespace(partial=False)

    await manager.start_job(job.job_id, runner)

    status = manager.get_status_dict(job)
    assert status["status"] == "completed"
    assert status["progress"] == 100.0
    assert status["selection_summary"] == {"selected_files": 2}
    assert "total_seconds" in status


@pytest.mark.asyncio
async def test_partial_result_marks_job_partial():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "widgets")

    async def runner(reporter):
        return SimpleNamespace(partial=True)

    await manager.start_job(job.job_id, runner)

    assert job.status == JobStatus.PARTIAL
    assert "time limit" in job.progress_message


@pytest.mark.asyncio
async def test_failure_records_readable_message():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "missing")

    async def runner(reporter):
        raise RepositoryNotFoundError("acme/missing")

    await manager.start_job(job.job_id, runner)

    assert job.status == JobStatus.FAILED
    assert job.fields["error_message"].startswith("Repository not found: acme/missing")
    assert "Traceback" not in job.progress_message


@pytest.mark.asyncio
async def test_cancel_running_job():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "widgets")
    started = asyncio.Event()

    async def runner(reporter):
        started.set()
        await asyncio.sleep(10)

    task = manager.start_job(job.job_id, runner)
    await started.wait()

    assert await manager.cancel_job(job.job_id)
    with pytest.raises(asyncio.CancelledError):
        await task
    assert job.status == JobStatus.CANCELLED
    assert not await manager.cancel_job(job.job_id)


@pytest.mark.asyncio
async def test_terminal_jobs_ignore_late_updates():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "widgets")
    await manager.mark_started(job.job_id)
    await manager.mark_completed(job.job_id)

    await manager.update_progress(job.job_id, progress=10, progress_message="late")
    await manager.mark_failed(job.job_id, "late failure")

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100.0
    assert "error_message" not in job.fields


@pytest.mark.asyncio
async def test_oldest_finished_jobs_are_evicted():
    evicted = []
    manager = AnalysisJobManager(max_finished_jobs=2, on_evict=evicted.append)
    running = manager.create_job("acme", "running")
    await manager.mark_started(running.job_id)

    finished = []
    for name in ("first", "second", "third"):
        job = manager.create_job("acme", name)
        await manager.mark_started(job.job_id)
        await manager.mark_completed(job.job_id)
        finished.append(job)

    assert evicted == [finished[0].job_id]
    assert manager.get_job(finished[0].job_id) is None
    assert manager.get_job(running.job_id) is running
    assert sum(1 for j in manager.list_jobs() if j.is_terminal) == 2


@pytest.mark.asyncio
async def test_unknown_progress_fields_are_rejected():
    manager = AnalysisJobManager()
    job = manager.create_job("acme", "widgets")

    with pytest.raises(ValueError):
        await manager.update_progress(job.job_id, whole_record={})


def test_list_jobs_and_status_shape():
    manager = AnalysisJobManager()
    first = manager.create_job("acme", "widgets", ref="main")
    manager.create_job("acme", "gadgets")

    assert [j.repo for j in manager.list_jobs()] == ["acme/widgets", "acme/gadgets"]
    status = manager.get_status_dict(first)
    assert status["status"] == "queued"
    assert status["ref"] == "main"
    assert status["progress_message"] == "Queued"
