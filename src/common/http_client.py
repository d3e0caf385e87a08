"""Fetch collaborator: the only module that talks HTTP.

Encapsulates request/timeout error handling so callers only ever see
``FetchFailed``. Listing fetches retry a bounded number of times; archive
streams do not, since a half-consumed body cannot be resumed safely.
"""
from __future__ import annotations

import io
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import requests

from constants import Constants
from errors import FetchFailed
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


def fetch_text(url: str, **kwargs: Any) -> str:
    """GET ``url`` and return the decoded body, retrying transport errors.

    Raises:
        FetchFailed: every attempt failed, or the server answered >= 400.
    """
    safe_target = safe_url(url)
    last_exception: Optional[str] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1,
                        ),
                    )
                response = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, **kwargs)
            except requests.Timeout:
                last_exception = f"timed out after {Constants.REQUEST_TIMEOUT} seconds"
            except requests.RequestException as exc:  # includes ConnectionError
                last_exception = str(exc)
            else:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target,
                        ),
                    )
                if response.status_code >= 500:
                    last_exception = f"HTTP {response.status_code}"
                elif response.status_code >= 400:
                    raise FetchFailed(safe_target, f"HTTP {response.status_code}")
                else:
                    return response.text

        logger.debug("GET %s attempt %d failed: %s", safe_target, attempt + 1, last_exception)
        if attempt + 1 < Constants.HTTP_RETRY_MAX:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))

    raise FetchFailed(
        safe_target,
        f"request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}",
    )


class _ResponseStream(io.RawIOBase):
    """Readable byte stream over ``Response.iter_content``.

    Mid-body transport errors surface as ``FetchFailed`` instead of leaking
    urllib3 exception types to the extractor.
    """

    def __init__(self, response: requests.Response, url: str):
        super().__init__()
        self._url = url
        self._chunks = response.iter_content(chunk_size=Constants.STREAM_CHUNK_SIZE)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except requests.RequestException as exc:
                raise FetchFailed(self._url, exc) from exc
        n = min(len(b), len(self._pending))
        b[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


@contextmanager
def open_stream(url: str) -> Iterator[io.BufferedReader]:
    """Open ``url`` as a streamed binary body.

    The body is never buffered whole; the caller reads it incrementally.

    Raises:
        FetchFailed: connection error, timeout, or HTTP status >= 400.
    """
    safe_target = safe_url(url)
    logger.debug("Streaming %s", safe_target)
    try:
        response = requests.get(url, stream=True, timeout=Constants.REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise FetchFailed(safe_target, exc) from exc

    with response:
        if response.status_code >= 400:
            raise FetchFailed(safe_target, f"HTTP {response.status_code}")
        yield io.BufferedReader(_ResponseStream(response, safe_target))
