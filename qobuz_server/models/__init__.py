"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application: configuration, catalog items and jobs.
"""

from .catalog import Album, Artist, Track, parse_album, parse_catalog_item
from .config import ServerConfig
from .job import Job, JobKind, JobStatus, QueueSnapshot

__all__ = [
    "Album",
    "Artist",
    "Job",
    "JobKind",
    "JobStatus",
    "QueueSnapshot",
    "ServerConfig",
    "Track",
    "parse_album",
    "parse_catalog_item",
]
