"""
Chronological offset resolution.

Offsets are tried from the cheapest, exact source to the expensive,
approximate one:

1. a millisecond start time embedded in the file name
   (``<hash>_testpagerec<start>_<end>.ts``)
2. the container start time reported by the media probe
3. ``0.0``

Nothing here raises or logs; an unresolved segment simply gets ``0.0``
and ``resolved=False`` and the caller decides how loud to be about it.
"""

import math
import re
from typing import Callable, Optional

from segment_merger.engine.grouping import basename
from segment_merger.schemas import MediaProbeResult, Segment

Probe = Callable[[str], MediaProbeResult]

_FILENAME_TIMESTAMP_PATTERN = re.compile(r"_testpagerec(\d+)_(\d+)\.ts$")
_ABSENT_START_TIMES = ("", "N/A")


def offset_from_filename(identifier: str) -> Optional[float]:
    match = _FILENAME_TIMESTAMP_PATTERN.search(basename(identifier))
    if not match:
        return None
    return int(match.group(1)) / 1000.0


def parse_start_time(value: Optional[str]) -> Optional[float]:
    """Parse a probe start time; empty, ``N/A`` and garbage are all absent."""
    if value is None:
        return None
    text = value.strip()
    if text in _ABSENT_START_TIMES:
        return None
    try:
        seconds = float(text)
    except ValueError:
        return None
    if not math.isfinite(seconds):
        return None
    return seconds


def _resolve(identifier: str, probe: Probe) -> Optional[float]:
    offset = offset_from_filename(identifier)
    if offset is not None:
        return offset
    try:
        result = probe(identifier)
    except Exception:
        return None
    return parse_start_time(result.start_time if result is not None else None)


def resolve_offset(identifier: str, probe: Probe) -> float:
    """
    Best-effort start time of a segment in seconds.

    Args:
        identifier: Local path of the segment.
        probe: Media probe collaborator, only called when the file name
            carries no timestamp.

    Returns:
        The offset in seconds, ``0.0`` when it could not be resolved.
    """
    offset = _resolve(identifier, probe)
    return 0.0 if offset is None else offset


def resolve_segment(segment: Segment, probe: Probe) -> Segment:
    offset = _resolve(segment.identifier, probe)
    return segment.model_copy(
        update={"chronological_offset": 0.0 if offset is None else offset, "resolved": offset is not None}
    )
