"""
Source group classification.

Segments captured from the primary feed belong to ``main``. Mirror feeds
are recognised by their file name: ``bak<N>_...`` is the numbered mirror
``bak<N>``, anything else mentioning ``bak`` is the generic ``bak`` mirror.
"""

import re
from typing import Iterable, List, Tuple
from urllib.parse import urlparse

from segment_merger.const import BACKUP_GROUP, MAIN_GROUP

_NUMBERED_BACKUP_PATTERN = re.compile(r"^bak(\d+)_")
_NUMBERED_TAG_PATTERN = re.compile(r"^bak(\d+)$")


def basename(identifier: str) -> str:
    """Last path component of a local path or URL, without query string."""
    path = urlparse(identifier).path if "://" in identifier else identifier
    return re.split(r"[\\/]", path)[-1]


def classify(identifier: str, numbered_backups: bool = True) -> str:
    """
    Map a segment identifier to its group tag.

    The numbered prefix is checked before the generic substring match,
    otherwise numbered mirrors would collapse into ``bak``.

    Args:
        identifier: Segment file name, path or URL.
        numbered_backups: When False only ``main`` and ``bak`` are emitted.

    Returns:
        ``main``, ``bak<N>`` or ``bak``.
    """
    name = basename(identifier)
    if numbered_backups:
        match = _NUMBERED_BACKUP_PATTERN.match(name)
        if match:
            return f"{BACKUP_GROUP}{match.group(1)}"
    if BACKUP_GROUP in name.lower():
        return BACKUP_GROUP
    return MAIN_GROUP


def group_priority(tag: str) -> Tuple[int, int, str]:
    """Sort key giving main < bak0 < bak1 < ... < bak < anything else."""
    if tag == MAIN_GROUP:
        return 0, 0, tag
    match = _NUMBERED_TAG_PATTERN.match(tag)
    if match:
        return 1, int(match.group(1)), tag
    if tag == BACKUP_GROUP:
        return 2, 0, tag
    return 3, 0, tag


def sort_group_tags(tags: Iterable[str]) -> List[str]:
    return sorted(set(tags), key=group_priority)
