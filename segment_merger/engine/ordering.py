import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Sequence

from segment_merger.engine.grouping import sort_group_tags
from segment_merger.schemas import Segment, SegmentDiagnostic

logger = logging.getLogger(__name__)


def segment_sort_key(segment: Segment):
    return segment.chronological_offset, segment.identifier


def order_segments(segments: Iterable[Segment] | Mapping[str, Sequence[Segment]]) -> Dict[str, List[Segment]]:
    """
    Partition segments by group and sort each group chronologically.

    Ties on the offset are broken by identifier so the result never depends
    on input order. Only non-empty groups are returned, inserted in group
    priority order.

    Args:
        segments: Resolved segments in any order, or a previous result of
            this function.

    Returns:
        Mapping of group tag to its ordered segments.
    """
    if isinstance(segments, Mapping):
        segments = flatten(segments)

    partitions: Dict[str, List[Segment]] = defaultdict(list)
    for segment in segments:
        partitions[segment.group].append(segment)

    return {tag: sorted(partitions[tag], key=segment_sort_key) for tag in sort_group_tags(partitions)}


def flatten(ordered: Mapping[str, Sequence[Segment]]) -> List[Segment]:
    return [segment for tag in sort_group_tags(ordered) for segment in ordered[tag]]


def describe_ordering(ordered: Mapping[str, Sequence[Segment]]) -> List[SegmentDiagnostic]:
    """Per-segment group, position and offset records for logging."""
    diagnostics = []
    for tag in sort_group_tags(ordered):
        for position, segment in enumerate(ordered[tag], start=1):
            diagnostics.append(
                SegmentDiagnostic(
                    identifier=segment.identifier,
                    group=tag,
                    position=position,
                    offset=segment.chronological_offset,
                    resolved=segment.resolved,
                )
            )
    return diagnostics


def log_ordering(ordered: Mapping[str, Sequence[Segment]]) -> None:
    logger.info(f"Found {len(ordered)} group(s):")
    for tag in sort_group_tags(ordered):
        logger.info(f"  {tag}: {len(ordered[tag])} file(s)")
    for diagnostic in describe_ordering(ordered):
        logger.info(
            "  [%s] %d. %s (offset: %.6f%s)",
            diagnostic.group,
            diagnostic.position,
            diagnostic.identifier,
            diagnostic.offset,
            "" if diagnostic.resolved else ", unresolved",
        )
