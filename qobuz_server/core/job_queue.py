"""
The in-memory, single-flight download queue.

Jobs are processed strictly one at a time in the order they were enqueued.
"""

import asyncio
import logging
import threading
from collections import deque
from typing import Optional, Protocol, Union

from qobuz_server.models.catalog import Album, Track
from qobuz_server.models.job import Job, QueueSnapshot

log = logging.getLogger(__name__)


class Runner(Protocol):
    async def run(self, job: Job) -> None: ...


class JobQueue:
    """
    Accepts track and album jobs and drives a single background worker.

    The pending deque, the current job slot and the worker flag form one
    critical section guarded by `_lock`. The lock is never held across an
    await.
    """

    def __init__(self, runner: Runner):
        self.runner = runner
        self._pending: deque[Job] = deque()
        self._current: Optional[Job] = None
        self._worker_running = False
        self._worker_task: Optional[asyncio.Task] = None
        self._lock = threading.Lock()

    def enqueue(self, subject: Union[Track, Album]) -> Optional[Job]:
        """
        Adds a job for `subject` unless the same item is already pending or current.

        Must be called from the event loop thread.

        Returns:
            The new job, or None if the request was a duplicate.
        """
        job = Job(subject=subject)
        with self._lock:
            is_current = (
                self._current is not None
                and self._current.subject_key == job.subject_key
            )
            in_queue = any(j.subject_key == job.subject_key for j in self._pending)
            if in_queue or is_current:
                log.info(f"Job for '{job.title}' is already in the queue.")
                return None

            self._pending.append(job)
            start_worker = not self._worker_running
            if start_worker:
                self._worker_running = True

        log.info(f"Added '{job.title}' to the download queue.")
        if start_worker:
            self._worker_task = asyncio.get_running_loop().create_task(
                self._process_queue()
            )
        return job

    def status(self) -> QueueSnapshot:
        """Returns a point-in-time copy of the current and pending jobs."""
        with self._lock:
            return QueueSnapshot(
                current_job=self._current.to_dict() if self._current else None,
                pending_jobs=tuple(job.to_dict() for job in self._pending),
            )

    @property
    def is_idle(self) -> bool:
        with self._lock:
            return not self._worker_running

    async def wait_until_idle(self) -> None:
        """Waits until the worker has drained every pending job."""
        while True:
            with self._lock:
                task = self._worker_task if self._worker_running else None
            if task is None:
                return
            await asyncio.shield(task)

    async def close(self) -> None:
        """Cancels the worker. Jobs still pending are dropped."""
        task = self._worker_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        with self._lock:
            self._pending.clear()
            self._current = None
            self._worker_running = False

    async def _process_queue(self) -> None:
        """Worker loop: takes the head of the queue until it is empty."""
        while True:
            with self._lock:
                if not self._pending:
                    self._current = None
                    self._worker_running = False
                    return
                job = self._pending.popleft()
                job.mark_processing()
                self._current = job

            log.info(f"Processing download for: {job.title}")
            try:
                await self.runner.run(job)
            except asyncio.CancelledError:
                job.mark_failed("Cancelled during shutdown.")
                raise
            except Exception as e:
                job.mark_failed(str(e) or type(e).__name__)
                log.error(
                    f"[red]✗ Failed to process job for '{job.title}': {e}[/red]",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
            else:
                job.mark_done()
                log.info(f"[green]✓ Finished processing:[/] {job.title}")
            finally:
                with self._lock:
                    self._current = None
