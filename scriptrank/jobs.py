from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from scriptrank.config import AppSettings
from scriptrank.logger import get_logger
from scriptrank.models import RunRequest
from scriptrank.scanner import FatalRunError, RunResult, RunState, Scanner

logger = get_logger(__name__)

ScannerFactory = Callable[[AppSettings], Scanner]


@dataclass(slots=True)
class JobState:
    job_id: str
    query: str
    limit: int
    status: str = "queued"
    state: str = RunState.IDLE.value
    progress_pct: int = 0
    message: str = ""
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    result: RunResult | None = None


MAX_FINISHED_JOBS = 100


class JobManager:
    def __init__(
        self,
        settings: AppSettings,
        scanner_factory: ScannerFactory = Scanner,
        max_finished: int = MAX_FINISHED_JOBS,
    ):
        self._settings = settings
        self._scanner_factory = scanner_factory
        self._max_finished = max_finished
        self._jobs: dict[str, JobState] = {}
        self._lock = threading.Lock()

    def start(self, request: RunRequest) -> JobState:
        job_id = uuid.uuid4().hex
        state = JobState(
            job_id=job_id,
            query=request.query,
            limit=request.limit,
            status="running",
        )
        state.started_at = datetime.now(timezone.utc)
        with self._lock:
            self._jobs[job_id] = state

        thread = threading.Thread(
            target=self._run,
            args=(job_id, request),
            daemon=True,
        )
        thread.start()
        return state

    def get(self, job_id: str) -> JobState | None:
        with self._lock:
            return self._jobs.get(job_id)

    def _run(self, job_id: str, request: RunRequest) -> None:
        try:
            scanner = self._scanner_factory(self._settings)
            result = scanner.run_scan(
                query=request.query,
                limit=request.limit,
                progress=lambda phase, pct, msg: self._update(job_id, phase, pct, msg),
            )
        except FatalRunError as exc:
            self._fail(job_id, str(exc))
            return
        except Exception as exc:
            logger.exception("Run %s crashed", job_id)
            self._fail(job_id, str(exc))
            return

        with self._lock:
            state = self._jobs[job_id]
            state.status = "done"
            state.state = RunState.REPORTED.value
            state.progress_pct = 100
            state.message = "Run completed"
            state.finished_at = datetime.now(timezone.utc)
            state.result = result
            self._prune()

    def _update(self, job_id: str, phase: str, pct: int, msg: str) -> None:
        with self._lock:
            state = self._jobs[job_id]
            state.state = phase
            state.progress_pct = max(0, min(100, pct))
            state.message = msg

    def _fail(self, job_id: str, error: str) -> None:
        with self._lock:
            state = self._jobs[job_id]
            state.status = "failed"
            state.state = RunState.FAILED.value
            state.error = error
            state.message = "Run failed"
            state.finished_at = datetime.now(timezone.utc)
            self._prune()

    def _prune(self) -> None:
        # Caller holds the lock; earliest started finished jobs go first.
        finished = [job_id for job_id, job in self._jobs.items() if job.finished_at is not None]
        for job_id in finished[: max(0, len(finished) - self._max_finished)]:
            del self._jobs[job_id]
