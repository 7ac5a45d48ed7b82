"""
Run orchestration: ingest, order, plan and execute.

Plan execution follows the failure policy of the merge: a group whose
merge fails is skipped with a warning and the final stage proceeds with
the groups that did merge; losing every group, or failing the final
merge, ends the run.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

import httpx

from segment_merger.configs import EncodeConfig, Settings
from segment_merger.engine.ordering import log_ordering, order_segments
from segment_merger.engine.plan import build_plan, render_concat_manifest
from segment_merger.engine.timestamps import Probe
from segment_merger.errors import MergeError
from segment_merger.ingestion import ingest
from segment_merger.remuxer import concat_executor
from segment_merger.remuxer.media_probe import probe_media
from segment_merger.schemas import ConcatenationPlan, FinalStageMode, GroupMergeMode, GroupOutput

logger = logging.getLogger(__name__)


def write_manifest(paths: Iterable[str], manifest_path: Path) -> Path:
    """Write a concat manifest with absolute paths, so it works from any directory."""
    absolute = [str(Path(path).resolve()) for path in paths]
    manifest_path.write_text(render_concat_manifest(absolute), encoding="utf-8")
    return manifest_path


def execute_group_stage(group: GroupOutput, work_dir: Path) -> Path:
    """
    Merge one group into its intermediate file.

    Raises:
        MergeError: If the executor fails.
    """
    output = work_dir / group.output_name
    if group.mode == GroupMergeMode.COPY:
        return concat_executor.stream_copy(group.segments[0].identifier, output)

    manifest = write_manifest((s.identifier for s in group.segments), work_dir / f"list_{group.tag}.txt")
    try:
        return concat_executor.concat_copy(manifest, output)
    finally:
        manifest.unlink(missing_ok=True)


def execute_final_stage(plan: ConcatenationPlan, work_dir: Path, output_path: Path, encode: EncodeConfig) -> Path:
    inputs = [work_dir / name for name in plan.final_outputs]
    if plan.final_mode == FinalStageMode.CONVERT:
        return concat_executor.stream_copy(inputs[0], output_path)

    manifest = write_manifest((str(p) for p in inputs), work_dir / "list_final.txt")
    try:
        return concat_executor.concat_transcode(manifest, output_path, encode)
    finally:
        manifest.unlink(missing_ok=True)


def execute_plan(plan: ConcatenationPlan, work_dir: Path, output_path: Path, encode: EncodeConfig) -> Path:
    """
    Run every group stage, then the final stage, and remove the intermediates.

    Raises:
        EmptyInputError: If no group merged successfully.
        MergeError: If the final merge fails.
    """
    work_dir.mkdir(parents=True, exist_ok=True)
    merged: List[str] = []
    for group in plan.group_outputs:
        logger.info(f"Merging group {group.tag} ({len(group.segments)} file(s)) into {group.output_name}")
        try:
            execute_group_stage(group, work_dir)
        except MergeError as e:
            logger.warning(f"Failed to merge group {group.tag}: {e}")
            continue
        merged.append(group.output_name)

    final_plan = plan.with_final_outputs(merged)
    logger.info(f"Final merge of {len(final_plan.final_outputs)} group file(s):")
    for position, name in enumerate(final_plan.final_outputs, start=1):
        logger.info(f"  {position}. {name}")
    logger.info(f"Writing final file: {output_path}")

    result = execute_final_stage(final_plan, work_dir, output_path, encode)
    for name in final_plan.final_outputs:
        (work_dir / name).unlink(missing_ok=True)
    return result


def _is_within(path: Path, directory: Path) -> bool:
    resolved = path.resolve()
    return resolved == directory or directory in resolved.parents


def _check_staging_dir(staging_dir: Path, sources: Iterable[str], output_path: Path) -> None:
    """Refuse a staging directory that would remove an input or the final output."""
    staging = staging_dir.resolve()
    for source in sources:
        path = Path(source)
        if path.exists() and _is_within(path, staging):
            raise ValueError(f"Input {source} is inside the staging directory {staging_dir}")
    if _is_within(output_path, staging):
        raise ValueError(f"Output {output_path} is inside the staging directory {staging_dir}")


async def run_merge(
    sources: List[str],
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    probe: Probe = probe_media,
) -> Path:
    """
    Merge the segments of every source into ``settings.output_path``.

    Returns:
        Path of the final merged file.

    Raises:
        EmptyInputError: If nothing could be ingested or merged.
        MergeError: If the final merge fails.
        ValueError: If an input or the output lies inside the staging directory.
    """
    staging_dir = Path(settings.temp_dir)
    output_path = Path(settings.output_path)
    _check_staging_dir(staging_dir, sources, output_path)
    shutil.rmtree(staging_dir, ignore_errors=True)
    staging_dir.mkdir(parents=True, exist_ok=True)

    try:
        segments = await ingest(sources, settings, client=client, probe=probe)
        ordered = order_segments(segments)
        log_ordering(ordered)

        plan = build_plan(
            ordered,
            intermediate_template=settings.intermediate_template,
            final_output_name=output_path.name,
        )
        result = await asyncio.to_thread(execute_plan, plan, staging_dir, output_path, settings.encode_config)
    finally:
        if not settings.keep_temp:
            shutil.rmtree(staging_dir, ignore_errors=True)

    logger.info(f"Merge complete: {result}")
    return result
