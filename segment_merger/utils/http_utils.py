import logging
import typing
from pathlib import Path

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from segment_merger.configs import Settings
from segment_merger.const import DEFAULT_REQUEST_HEADERS
from segment_merger.errors import FetchError

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES = (408, 425, 429)


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, FetchError):
        return False
    return exc.status_code >= 500 or exc.status_code in _TRANSIENT_STATUS_CODES


def build_request_headers(settings: Settings, extra: typing.Optional[dict] = None) -> dict:
    headers = dict(DEFAULT_REQUEST_HEADERS)
    headers["user-agent"] = settings.user_agent
    if extra:
        headers.update(extra)
    return headers


def create_httpx_client(settings: Settings, follow_redirects: bool = True, **kwargs) -> httpx.AsyncClient:
    """
    Create an HTTPX AsyncClient configured from the transport settings.

    Args:
        settings (Settings): Run settings; transport routes, timeout and user agent are used.
        follow_redirects (bool): Whether to follow 3xx redirects automatically.
        **kwargs: Additional AsyncClient keyword arguments (e.g. ``transport`` in tests).

    Returns:
        httpx.AsyncClient: Configured client.
    """
    transport_config = settings.transport_config
    kwargs.setdefault("timeout", transport_config.timeout)
    kwargs.setdefault("headers", build_request_headers(settings))

    return httpx.AsyncClient(
        mounts=transport_config.get_mounts(),
        follow_redirects=follow_redirects,
        verify=not transport_config.disable_ssl_verification_globally,
        **kwargs,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)
async def fetch_with_retry(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
    """
    Fetch a URL with retry logic.

    Args:
        client (httpx.AsyncClient): HTTP client to use for the request.
        method (str): HTTP method (e.g., GET, POST).
        url (str): Target URL.
        **kwargs: Additional request arguments.

    Returns:
        httpx.Response: HTTP response.

    Raises:
        FetchError: If the request fails; timeouts, connection errors and 5xx are retried first.
    """
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response
    except httpx.TimeoutException:
        logger.warning(f"Timeout while downloading {url}")
        raise FetchError(504, f"Timeout while downloading {url}")
    except httpx.HTTPStatusError as e:
        logger.error(f"HTTP error {e.response.status_code} while downloading {url}")
        raise FetchError(e.response.status_code, f"HTTP error {e.response.status_code} while downloading {url}")
    except httpx.RequestError as e:
        logger.error(f"Error downloading {url}: {e}")
        raise FetchError(502, f"Error downloading {url}: {e}") from e
    except (httpx.InvalidURL, ValueError) as e:
        logger.error(f"Invalid URL {url}: {e}")
        raise FetchError(400, f"Invalid URL {url}: {e}") from e


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    response = await fetch_with_retry(client, "GET", url)
    return response.text


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)
async def download_segment(client: httpx.AsyncClient, url: str, dest: typing.Union[str, Path]) -> Path:
    """
    Stream a segment to ``dest``.

    A partially written file is removed when the download fails.

    Returns:
        Path: The local path of the downloaded segment.

    Raises:
        FetchError: On network or HTTP status failure, or when the URL cannot be parsed.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with dest.open("wb") as file:
                async for chunk in response.aiter_bytes():
                    file.write(chunk)
    except httpx.TimeoutException:
        dest.unlink(missing_ok=True)
        logger.warning(f"Timeout while downloading {url}")
        raise FetchError(504, f"Timeout while downloading {url}")
    except httpx.HTTPStatusError as e:
        dest.unlink(missing_ok=True)
        logger.error(f"HTTP error {e.response.status_code} while downloading {url}")
        raise FetchError(e.response.status_code, f"HTTP error {e.response.status_code} while downloading {url}")
    except (httpx.RequestError, OSError) as e:
        dest.unlink(missing_ok=True)
        logger.error(f"Error downloading {url}: {e}")
        raise FetchError(502, f"Error downloading {url}: {e}") from e
    except (httpx.InvalidURL, ValueError) as e:
        dest.unlink(missing_ok=True)
        logger.error(f"Invalid URL {url}: {e}")
        raise FetchError(400, f"Invalid URL {url}: {e}") from e
    return dest
