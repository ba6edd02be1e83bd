"""
Media Processing Layer.

This package is responsible for all media file operations, including
downloading, transcoding with embedded tags, and integrity validation.
"""

from .downloader import Downloader
from .integrity import verify_flac
from .tagger import Tagger
from .transcoder import Transcoder

__all__ = ["Downloader", "Tagger", "Transcoder", "verify_flac"]
