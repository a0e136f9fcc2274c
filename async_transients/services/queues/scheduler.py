"""
Regeneration Scheduler

Deferred single-shot job queue and runner. A job stays pending from the
moment it is scheduled until its handlers finish, so scheduling the same
job name again in between is a no-op.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

import structlog
from opentelemetry import trace
from pydantic import BaseModel, Field

from ...constants import get_current_timestamp
from ...core.config import get_settings
from ...domain.cache.repository_interfaces import JobHandler, JobQueue
from ...domain.cache.value_objects import HookHandle
from ...monitoring.metrics import transient_regeneration_jobs_total

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ErrorCallback = Callable[[str, Exception], Any]


class ScheduledJob(BaseModel):
    """A pending single-shot job."""

    job_name: str = Field(..., min_length=1)
    due_at: float = Field(..., description="Epoch seconds at which the job may run")
    scheduled_at: float
    started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.started_at is not None


class RegenerationScheduler(JobQueue):
    """
    In-process deferred job queue with a polling runner.

    ``run_due()`` fires every due job once; ``start()`` runs it in a loop
    until ``stop()`` is called. Handler failures are reported on the error
    channel (log, failure counter, ``on_error`` callback) and never reach
    whoever scheduled the job.
    """

    def __init__(
        self,
        *,
        poll_interval: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        on_error: Optional[ErrorCallback] = None,
        worker_id: Optional[str] = None,
    ):
        self.poll_interval = poll_interval or get_settings().SCHEDULER_POLL_INTERVAL
        self.worker_id = worker_id or f"regen-{uuid4().hex[:8]}"
        self._clock = clock
        self._on_error = on_error
        self._handlers: Dict[str, List[JobHandler]] = {}
        self._pending: Dict[str, ScheduledJob] = {}
        self._running = False
        self._shutdown_event: Optional[asyncio.Event] = None
        self._stats = {
            "jobs_scheduled": 0,
            "jobs_deduplicated": 0,
            "jobs_completed": 0,
            "jobs_failed": 0,
            "start_time": None,
            "last_activity": None,
        }

    async def schedule_once(self, job_name: str, when_due: Optional[float] = None) -> bool:
        if job_name in self._pending:
            self._stats["jobs_deduplicated"] += 1
            logger.debug("Job already pending", job_name=job_name)
            return False

        now = self._clock()
        job = ScheduledJob(
            job_name=job_name,
            due_at=now if when_due is None else when_due,
            scheduled_at=now,
        )
        self._pending[job_name] = job
        self._stats["jobs_scheduled"] += 1
        logger.debug("Scheduled job", job_name=job_name, due_at=job.due_at)
        return True

    def on_job_fire(self, job_name: str, handler: JobHandler) -> HookHandle:
        handlers = self._handlers.setdefault(job_name, [])
        handlers.append(handler)

        def remove() -> None:
            if handler in handlers:
                handlers.remove(handler)
            if not handlers and self._handlers.get(job_name) is handlers:
                del self._handlers[job_name]

        return HookHandle(remove, label=f"job:{job_name}")

    def is_pending(self, job_name: str) -> bool:
        return job_name in self._pending

    def pending_jobs(self) -> List[ScheduledJob]:
        return list(self._pending.values())

    async def run_due(self) -> int:
        """Fire every job that is due and not already running."""
        now = self._clock()
        due = [
            job
            for job in self._pending.values()
            if job.due_at <= now and not job.is_running
        ]

        for job in due:
            await self._fire(job)

        return len(due)

    async def _fire(self, job: ScheduledJob) -> None:
        job.started_at = self._clock()
        self._stats["last_activity"] = get_current_timestamp()
        handlers = list(self._handlers.get(job.job_name, ()))

        with tracer.start_as_current_span("scheduler.fire_job") as span:
            span.set_attribute("worker_id", self.worker_id)
            span.set_attribute("job_name", job.job_name)

            try:
                if not handlers:
                    logger.warning("No handler registered for job", job_name=job.job_name)

                for handler in handlers:
                    await handler()

                self._stats["jobs_completed"] += 1
                transient_regeneration_jobs_total.labels(status="success").inc()

            except Exception as e:
                self._stats["jobs_failed"] += 1
                transient_regeneration_jobs_total.labels(status="failure").inc()
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Regeneration job failed",
                    job_name=job.job_name,
                    worker_id=self.worker_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._report_error(job.job_name, e)

            finally:
                # Clearing the marker ends the episode; a later read reschedules.
                self._pending.pop(job.job_name, None)

    def _report_error(self, job_name: str, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(job_name, error)
        except Exception as callback_error:
            logger.error(
                "Job error callback failed", job_name=job_name, error=str(callback_error)
            )

    async def start(self) -> None:
        """Run due jobs until stopped."""
        if self._running:
            return

        self._running = True
        self._shutdown_event = asyncio.Event()
        self._stats["start_time"] = get_current_timestamp()
        logger.info("Starting regeneration scheduler", worker_id=self.worker_id)

        try:
            while self._running:
                try:
                    await self.run_due()
                except Exception as e:
                    logger.error(
                        "Scheduler error in main loop", worker_id=self.worker_id, error=str(e)
                    )

                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(), timeout=self.poll_interval
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Regeneration scheduler stopped", worker_id=self.worker_id)

    async def stop(self) -> None:
        """Stop the runner loop after the current pass."""
        self._running = False
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @property
    def running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            **self._stats,
            "worker_id": self.worker_id,
            "pending": len(self._pending),
            "running": self._running,
        }
