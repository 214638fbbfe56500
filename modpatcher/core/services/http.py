"""
HTTP helpers — plain GETs for manifests, mirror tables and downloads.

Reads happen in chunks so a ``threading.Event`` can abort a superseded
request between them. No timeout is applied unless the caller asks.
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from modpatcher import __version__

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024
_USER_AGENT = f"modpatcher/{__version__}"


class FetchError(Exception):
    """Transport failure, non-2xx status, or undecodable body."""


class FetchCancelled(FetchError):
    """The request was cancelled by a newer one."""


def _open(url: str, timeout: float | None, accept: str):
    req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT, "Accept": accept})
    if timeout is None:
        return urllib.request.urlopen(req)
    return urllib.request.urlopen(req, timeout=timeout)


def _read(resp, cancel: threading.Event | None, sink) -> None:
    while True:
        if cancel is not None and cancel.is_set():
            raise FetchCancelled("Request cancelled")
        chunk = resp.read(_CHUNK)
        if not chunk:
            return
        sink(chunk)


def get_bytes(
    url: str,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> bytes:
    """GET a URL and return the body.

    Raises:
        FetchCancelled: If ``cancel`` was set before the body was read.
        FetchError: On any transport or status failure.
    """
    parts: list[bytes] = []
    try:
        with _open(url, timeout, "*/*") as resp:
            _read(resp, cancel, parts.append)
    except FetchError:
        raise
    except urllib.error.HTTPError as e:
        raise FetchError(f"GET {url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise FetchError(f"GET {url} failed: {e}") from e
    return b"".join(parts)


def get_json(
    url: str,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
) -> Any:
    """GET a URL and decode it as JSON."""
    body = get_bytes(url, timeout=timeout, cancel=cancel)
    try:
        return json.loads(body)
    except ValueError as e:
        raise FetchError(f"Invalid JSON from {url}: {e}") from e


def download_file(url: str, destination: Path, timeout: float | None = None) -> Path:
    """Stream a URL to a local file. A partial file is removed on failure."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s", url)
    try:
        with _open(url, timeout, "application/octet-stream") as resp, open(destination, "wb") as f:
            _read(resp, None, f.write)
    except urllib.error.HTTPError as e:
        destination.unlink(missing_ok=True)
        raise FetchError(f"GET {url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        destination.unlink(missing_ok=True)
        raise FetchError(f"Download of {url} failed: {e}") from e
    return destination
