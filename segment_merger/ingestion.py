"""
Segment ingestion: source expansion, download, classification and
timestamp resolution.

Each input source is one of

- an M3U8 media playlist URL (its ``.ts`` entries are downloaded)
- a direct ``.ts`` URL
- a local directory (every ``*.ts`` file in it)
- a local ``.ts`` file

Local files are used in place. Remote segments are downloaded into the
``segments`` subdirectory of the staging directory under their own file
name, which the group classifier relies on. Every failure here is per
segment or per source: it is logged and skipped, and only an empty result
is fatal.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import httpx

from segment_merger.configs import Settings
from segment_merger.const import DOWNLOAD_SUBDIR, PLAYLIST_EXTENSIONS, SEGMENT_EXTENSION
from segment_merger.engine.grouping import basename
from segment_merger.engine.timestamps import Probe, resolve_segment
from segment_merger.errors import EmptyInputError, FetchError
from segment_merger.remuxer.media_probe import probe_media
from segment_merger.schemas import Segment
from segment_merger.utils.hls_utils import fetch_segment_list, is_segment_url
from segment_merger.utils.http_utils import create_httpx_client, download_segment

logger = logging.getLogger(__name__)


@dataclass
class SegmentLocation:
    """Where a segment comes from and where it lives locally."""

    source: str
    local_path: Path
    remote: bool


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _is_playlist_url(source: str) -> bool:
    path = httpx.URL(source).path.lower()
    return path.endswith(PLAYLIST_EXTENSIONS)


def _local_locations(source: str) -> List[SegmentLocation]:
    path = Path(source)
    if path.is_dir():
        files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() == SEGMENT_EXTENSION)
        logger.info(f"Found {len(files)} TS file(s) in {path}")
        return [SegmentLocation(source=str(p), local_path=p, remote=False) for p in files]
    if path.is_file():
        return [SegmentLocation(source=source, local_path=path, remote=False)]
    logger.warning(f"Input not found, skipping: {source}")
    return []


async def expand_sources(
    client: httpx.AsyncClient, sources: Iterable[str], download_dir: Path
) -> List[SegmentLocation]:
    """
    Turn input sources into a flat, de-duplicated list of segment locations.

    A malformed URL or a playlist that cannot be fetched is skipped with a
    warning.
    """
    locations: List[SegmentLocation] = []
    for source in sources:
        logger.info(f"Processing source: {source}")
        if not _is_url(source):
            locations.extend(_local_locations(source))
            continue

        try:
            playlist = _is_playlist_url(source)
            segment = is_segment_url(source)
        except (httpx.InvalidURL, ValueError) as e:
            logger.warning(f"Malformed source URL {source}: {e}, skipping")
            continue

        if playlist:
            try:
                urls = await fetch_segment_list(client, source)
            except FetchError as e:
                logger.warning(f"Failed to read playlist {source}: {e.message}, skipping")
                continue
        elif segment:
            urls = [source]
        else:
            logger.warning(f"Unsupported source, skipping: {source}")
            continue

        locations.extend(
            SegmentLocation(source=url, local_path=download_dir / basename(url), remote=True) for url in urls
        )

    unique: List[SegmentLocation] = []
    seen = set()
    for location in locations:
        key = location.local_path.name if location.remote else str(location.local_path.resolve())
        if key in seen:
            logger.warning(f"Duplicate segment {location.local_path.name} from {location.source}, skipping")
            continue
        seen.add(key)
        unique.append(location)
    return unique


async def download_segments(
    client: httpx.AsyncClient,
    locations: Sequence[SegmentLocation],
    settings: Settings,
) -> List[Segment]:
    """
    Download remote locations concurrently and build classified segments.

    Failed downloads are dropped with a warning; the order of the returned
    segments follows ``locations``.
    """
    semaphore = asyncio.Semaphore(max(settings.max_concurrent_downloads, 1))

    async def _ingest(location: SegmentLocation) -> Optional[Segment]:
        segment = Segment.from_identifier(
            str(location.local_path), numbered_backups=settings.numbered_backups, source=location.source
        )
        if not location.remote:
            return segment
        logger.info(f"Downloading file: {location.local_path.name} (group: {segment.group})")
        async with semaphore:
            try:
                await download_segment(client, location.source, location.local_path)
            except FetchError as e:
                logger.warning(f"Download failed: {e.message}, skipping")
                return None
        return segment

    results = await asyncio.gather(*(_ingest(location) for location in locations))
    return [segment for segment in results if segment is not None]


async def resolve_offsets(
    segments: Sequence[Segment], probe: Probe = probe_media, max_workers: Optional[int] = None
) -> List[Segment]:
    """
    Resolve every segment's chronological offset in a bounded worker pool.

    Returns only once all resolutions are done, so callers can order the
    result right away. Unresolved segments keep ``0.0`` and are logged.
    """
    if not segments:
        return []
    workers = max_workers or min(os.cpu_count() or 1, len(segments))
    semaphore = asyncio.Semaphore(max(workers, 1))

    async def _resolve(segment: Segment) -> Segment:
        async with semaphore:
            resolved = await asyncio.to_thread(resolve_segment, segment, probe)
        if not resolved.resolved:
            logger.warning(f"Could not resolve start time of {resolved.identifier}, using 0.0")
        return resolved

    return list(await asyncio.gather(*(_resolve(segment) for segment in segments)))


async def ingest(
    sources: Iterable[str],
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    probe: Probe = probe_media,
) -> List[Segment]:
    """
    Fetch, classify and resolve every segment of the given sources.

    Args:
        sources: Playlist URLs, segment URLs, directories or files.
        settings: Run settings (staging directory, concurrency, taxonomy).
        client: HTTP client to use; one is created from ``settings`` when omitted.
        probe: Media probe used when a file name carries no timestamp.

    Returns:
        Resolved segments, in ingestion order.

    Raises:
        EmptyInputError: If no segment could be ingested.
    """
    download_dir = Path(settings.temp_dir) / DOWNLOAD_SUBDIR
    if client is None:
        async with create_httpx_client(settings) as own_client:
            return await ingest(sources, settings, own_client, probe)

    locations = await expand_sources(client, sources, download_dir)
    segments = await download_segments(client, locations, settings)
    if not segments:
        raise EmptyInputError("No segment was downloaded successfully")
    logger.info(f"Ingested {len(segments)} of {len(locations)} segment(s)")
    return await resolve_offsets(segments, probe, settings.max_workers)
