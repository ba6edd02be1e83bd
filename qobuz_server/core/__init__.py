"""
Core acquisition engine.

The `JobQueue` owns pending work and a single worker; each job is executed by
the `JobRunner`, which hands individual tracks to the `TrackProcessor`.
"""

from .job_queue import JobQueue
from .job_runner import JobRunner
from .track_processor import TrackProcessor

__all__ = ["JobQueue", "JobRunner", "TrackProcessor"]
