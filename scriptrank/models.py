from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from scriptrank.config import DEFAULT_LIMIT


class RunRequest(BaseModel):
    query: str = Field(min_length=1, max_length=500)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=1000)

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value


class RunStartResponse(BaseModel):
    job_id: str
    status_url: str


class RankedEntryModel(BaseModel):
    key: str
    count: int = Field(ge=0)


class RunStatusResponse(BaseModel):
    job_id: str
    status: Literal["queued", "running", "done", "failed"]
    state: str
    progress_pct: int = Field(ge=0, le=100)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    message: str = ""
    error: str | None = None
    query: str
    limit: int
    entries: list[RankedEntryModel] | None = None


class RunReportResponse(BaseModel):
    query: str
    seed_url: str
    candidates: int
    pages_scanned: int
    pages_failed: int
    references: int
    entries: list[RankedEntryModel]
    stage_durations: dict[str, float]
