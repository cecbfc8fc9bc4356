from __future__ import annotations

from dataclasses import asdict

from fastapi import FastAPI, HTTPException

from scriptrank.config import AppSettings
from scriptrank.jobs import JobManager, JobState
from scriptrank.models import (
    RankedEntryModel,
    RunReportResponse,
    RunRequest,
    RunStartResponse,
    RunStatusResponse,
)

settings = AppSettings()
jobs = JobManager(settings=settings)

app = FastAPI(title="scriptrank")


def _entries(job: JobState) -> list[RankedEntryModel] | None:
    if job.result is None:
        return None
    return [RankedEntryModel(key=entry.key, count=entry.count) for entry in job.result.entries]


@app.post("/api/runs", response_model=RunStartResponse)
def start_run(payload: RunRequest):
    job = jobs.start(payload)
    return RunStartResponse(job_id=job.job_id, status_url=f"/api/runs/{job.job_id}")


@app.get("/api/runs/{job_id}", response_model=RunStatusResponse)
def get_run(job_id: str):
    job = jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Unknown job id")
    return RunStatusResponse(
        job_id=job.job_id,
        status=job.status,  # type: ignore[arg-type]
        state=job.state,
        progress_pct=job.progress_pct,
        started_at=job.started_at,
        finished_at=job.finished_at,
        message=job.message,
        error=job.error,
        query=job.query,
        limit=job.limit,
        entries=_entries(job),
    )


@app.get("/api/runs/{job_id}/report", response_model=RunReportResponse)
def get_report(job_id: str):
    job = jobs.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Unknown job id")
    if job.status != "done" or job.result is None:
        raise HTTPException(status_code=409, detail="Report unavailable until run completes")
    payload = asdict(job.result)
    return RunReportResponse(**payload)
