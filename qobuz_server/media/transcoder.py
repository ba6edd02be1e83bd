"""
Runs ffmpeg to normalize downloaded audio to FLAC and embed tags and cover art.
"""

import asyncio
import logging
from pathlib import Path
from typing import Mapping, Optional

from qobuz_server.exceptions import TranscodeError

log = logging.getLogger(__name__)


def build_ffmpeg_args(
    input_path: Path,
    output_path: Path,
    metadata: Mapping[str, str],
    cover_path: Optional[Path] = None,
) -> list[str]:
    """
    Builds the ffmpeg argument list (without the executable).

    Audio comes from the first input. A cover, when given, is the second input
    and is copied unchanged as the attached picture.
    """
    args = ["-i", str(input_path)]
    if cover_path:
        args += ["-i", str(cover_path)]

    args += ["-y", "-c:a", "flac", "-map", "0:a"]
    if cover_path:
        args += ["-map", "1:v", "-c:v", "copy", "-disposition:v", "attached_pic"]

    for key, value in metadata.items():
        if value:
            args += ["-metadata", f"{key}={value}"]

    args.append(str(output_path))
    return args


class Transcoder:
    """Thin async wrapper around the ffmpeg executable."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    async def transcode(
        self,
        input_path: Path,
        output_path: Path,
        metadata: Mapping[str, str],
        cover_path: Optional[Path] = None,
    ) -> None:
        """
        Transcodes `input_path` to a tagged FLAC file at `output_path`.

        Raises:
            TranscodeError: If ffmpeg cannot be started or exits non-zero. The
                message carries ffmpeg's stderr output.
        """
        args = build_ffmpeg_args(input_path, output_path, metadata, cover_path)
        log.debug(f"Running {self.ffmpeg_path} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(
                f"Failed to start ffmpeg ('{self.ffmpeg_path}'): {e}"
            ) from e

        _, stderr_bytes = await process.communicate()
        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            log.debug(f"ffmpeg stderr:\n{stderr}")
            raise TranscodeError(
                f"ffmpeg failed with code {process.returncode}: {stderr}",
                returncode=process.returncode,
                stderr=stderr,
            )
