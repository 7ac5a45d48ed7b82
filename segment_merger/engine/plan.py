"""
Concatenation plan builder.

Turns ordered groups into a two-stage plan:

1. one lossless concat per group into an intermediate file
   (a single-segment group degenerates to a stream copy)
2. a final merge of the intermediates in group priority order, either a
   concat with re-encoding or, with a single intermediate, a direct
   format conversion

Group order always comes from ``group_priority``; the iteration order of
the input mapping is never trusted.
"""

from typing import Iterable, Mapping, Sequence

from segment_merger.engine.grouping import sort_group_tags
from segment_merger.engine.ordering import segment_sort_key
from segment_merger.errors import EmptyInputError
from segment_merger.schemas import (
    ConcatenationPlan,
    FinalStageMode,
    GroupMergeMode,
    GroupOutput,
    Segment,
)

DEFAULT_INTERMEDIATE_TEMPLATE = "merged_{tag}.ts"
DEFAULT_FINAL_OUTPUT = "final_merged.mp4"


def intermediate_name(tag: str, template: str = DEFAULT_INTERMEDIATE_TEMPLATE) -> str:
    return template.format(tag=tag)


def build_plan(
    ordered_groups: Mapping[str, Sequence[Segment]],
    intermediate_template: str = DEFAULT_INTERMEDIATE_TEMPLATE,
    final_output_name: str = DEFAULT_FINAL_OUTPUT,
) -> ConcatenationPlan:
    """
    Build the concatenation plan for ordered segment groups.

    Args:
        ordered_groups: Group tag to ordered segments, as returned by
            ``order_segments``. Empty groups are skipped.
        intermediate_template: Format string for per-group outputs.
        final_output_name: Name of the final artifact.

    Returns:
        The plan, groups in priority order.

    Raises:
        EmptyInputError: If no group has any segment.
    """
    group_outputs = []
    for tag in sort_group_tags(ordered_groups):
        segments = list(ordered_groups[tag])
        if not segments:
            continue
        group_outputs.append(
            GroupOutput(
                tag=tag,
                segments=sorted(segments, key=segment_sort_key),
                output_name=intermediate_name(tag, intermediate_template),
                mode=GroupMergeMode.COPY if len(segments) == 1 else GroupMergeMode.CONCAT,
            )
        )

    if not group_outputs:
        raise EmptyInputError("No segments to merge")

    final_outputs = [group.output_name for group in group_outputs]
    return ConcatenationPlan(
        group_outputs=group_outputs,
        final_outputs=final_outputs,
        final_output_name=final_output_name,
        final_mode=FinalStageMode.CONVERT if len(final_outputs) == 1 else FinalStageMode.CONCAT_TRANSCODE,
    )


def _quote(path: str) -> str:
    return "'" + path.replace("'", "'\\''") + "'"


def render_concat_manifest(paths: Iterable[str]) -> str:
    """Concat demuxer file list, one ``file '<path>'`` line per input."""
    return "".join(f"file {_quote(str(path))}\n" for path in paths)
