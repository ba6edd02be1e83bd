"""
Job models for the server-side acquisition queue.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from qobuz_server.models.catalog import Album, Track
from qobuz_server.utils.formatting import get_track_title


class JobStatus(str, Enum):
    """Status of a queued job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class JobKind(str, Enum):
    TRACK = "track"
    ALBUM = "album"


@dataclass
class Job:
    """
    One queued unit of acquisition work for a track or an album.

    Only the queue worker mutates `status` and `error`.
    """

    subject: Union[Track, Album]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.QUEUED
    error: Optional[str] = None

    @property
    def kind(self) -> JobKind:
        return JobKind(self.subject.kind)

    @property
    def title(self) -> str:
        return get_track_title(self.subject)

    @property
    def subject_key(self) -> tuple[str, str]:
        """Identity used to detect duplicate requests for the same item."""
        return self.kind.value, str(self.subject.id)

    def mark_processing(self) -> None:
        self.status = JobStatus.PROCESSING
        self.error = None

    def mark_done(self) -> None:
        self.status = JobStatus.DONE
        self.error = None

    def mark_failed(self, error: str) -> None:
        self.status = JobStatus.FAILED
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        """Serializes the job for status consumers."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "status": self.status.value,
            "error": self.error,
            "item": self.subject.model_dump(mode="json", exclude_none=True),
        }


@dataclass(frozen=True)
class QueueSnapshot:
    """A point-in-time copy of the queue for polling consumers."""

    current_job: Optional[dict[str, Any]]
    pending_jobs: tuple[dict[str, Any], ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentJob": self.current_job,
            "pendingJobs": list(self.pending_jobs),
        }
