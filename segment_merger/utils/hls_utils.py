import logging
from typing import List
from urllib.parse import urljoin, urlparse

import httpx

from segment_merger.const import SEGMENT_EXTENSION
from segment_merger.utils.http_utils import fetch_text

logger = logging.getLogger(__name__)


def playlist_base_url(playlist_url: str) -> str:
    """Directory of the playlist URL, used to resolve relative segment URLs."""
    parsed = urlparse(playlist_url)
    path = parsed.path.rsplit("/", 1)[0] + "/" if "/" in parsed.path else "/"
    return parsed._replace(path=path, params="", query="", fragment="").geturl()


def is_segment_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(SEGMENT_EXTENSION)


def parse_segment_playlist(playlist_content: str, base_url: str) -> List[str]:
    """
    Extracts the flat list of transport-stream segment URLs from a media playlist.

    Tags, comments, blank lines, malformed and non-``.ts`` URIs are skipped; relative URIs
    are resolved against ``base_url``.

    Args:
        playlist_content (str): The content of the M3U8 media playlist.
        base_url (str): The URL of the playlist (or its directory).

    Returns:
        List[str]: Absolute segment URLs in playlist order.
    """
    base = playlist_base_url(base_url)
    segment_urls = []
    for line in playlist_content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            if not is_segment_url(line):
                continue
            segment_urls.append(urljoin(base, line))
        except ValueError as e:
            logger.warning(f"Skipping malformed playlist entry {line!r}: {e}")
    return segment_urls


async def fetch_segment_list(client: httpx.AsyncClient, playlist_url: str) -> List[str]:
    content = await fetch_text(client, playlist_url)
    segment_urls = parse_segment_playlist(content, playlist_url)
    logger.info(f"Found {len(segment_urls)} TS file(s) in {playlist_url}")
    if segment_urls:
        logger.debug(f"First TS file: {segment_urls[0]}")
        if len(segment_urls) > 1:
            logger.debug(f"Last TS file: {segment_urls[-1]}")
    return segment_urls
