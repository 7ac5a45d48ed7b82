"""
Container-level probing via PyAV.

Only the container start time is read; it is reported the way ffprobe
prints ``format.start_time``: seconds with six decimals, or ``N/A`` when
the demuxer does not know it.
"""

import logging
from pathlib import Path
from typing import Union

import av

from segment_merger.errors import ProbeError
from segment_merger.schemas import MediaProbeResult

logger = logging.getLogger(__name__)


def probe_media(path: Union[str, Path]) -> MediaProbeResult:
    """
    Read the container start time of a media file.

    Raises:
        ProbeError: If the file cannot be opened or demuxed.
    """
    try:
        with av.open(str(path)) as container:
            start_time = container.start_time
    except (av.error.FFmpegError, OSError) as e:
        logger.debug("[media_probe] Cannot probe %s: %s", path, e)
        raise ProbeError(f"Cannot probe {path}: {e}") from e

    if start_time is None:
        return MediaProbeResult(start_time="N/A")
    return MediaProbeResult(start_time=f"{start_time / av.time_base:.6f}")
