"""
Post-transcode check that ffmpeg actually produced a playable FLAC file.
"""

import logging
from pathlib import Path

from mutagen import MutagenError
from mutagen.flac import FLAC, FLACNoHeaderError

from qobuz_server.exceptions import FileIntegrityError

log = logging.getLogger(__name__)


def verify_flac(filepath: Path) -> None:
    """
    Opens the file with mutagen and requires stream info with a positive length.

    Raises:
        FileIntegrityError: If the file is missing, has no FLAC header, or
            reports no audio.
    """
    try:
        audio = FLAC(str(filepath))
    except FLACNoHeaderError as e:
        raise FileIntegrityError(f"'{filepath.name}' has no FLAC header.") from e
    except MutagenError as e:
        raise FileIntegrityError(f"'{filepath.name}' could not be read: {e}") from e

    if not audio.info or audio.info.length <= 0:
        raise FileIntegrityError(f"'{filepath.name}' contains no audio stream.")

    log.debug(
        f"Verified '{filepath.name}': {audio.info.length:.1f}s, "
        f"{audio.info.bits_per_sample}-bit/{audio.info.sample_rate} Hz"
    )
