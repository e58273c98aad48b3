"""
Image sources for the flasher.

A source is either a locally supplied file or a remote URL. Both resolve to
an immutable ``bytes`` buffer. Remote sources only exist for URLs that match
the trusted pattern and are always flagged as untrusted to the operator.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import requests

logger = logging.getLogger(__name__)

TRUSTED_URL_RE = re.compile(r"^https?://.+\.bin$", re.IGNORECASE)


class ImageSourceError(Exception):
    """Base exception for image resolution."""


class SourceUnavailableError(ImageSourceError):
    """No file was supplied, the file cannot be read, or the network failed."""


class FetchFailedError(ImageSourceError):
    """The remote server answered with a status outside 2xx."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Fetching {url} failed with HTTP {status_code}")


class UntrustedSourceError(ValueError):
    """URL does not match the trusted ``http(s)://....bin`` pattern."""


def is_trusted_image_url(url: Optional[str]) -> bool:
    """Check a URL against ``^https?://.+\\.bin$`` (case-insensitive)."""
    if not url:
        return False
    return TRUSTED_URL_RE.match(url) is not None


@dataclass(frozen=True)
class LocalImageSource:
    """
    Image supplied by the operator.

    ``file`` is a path, a binary file object with ``read()`` (for example a
    Streamlit upload), or None while nothing has been chosen.
    """
    file: Any = None

    trusted = True

    @property
    def is_empty(self) -> bool:
        return self.file is None

    @property
    def name(self) -> str:
        if self.file is None:
            return ""
        if isinstance(self.file, (str, Path)):
            return Path(self.file).name
        return str(getattr(self.file, "name", "<upload>"))


@dataclass(frozen=True)
class RemoteImageSource:
    """Image fetched from a trusted-pattern URL. Never trusted content-wise."""
    url: str

    trusted = False
    is_empty = False

    def __post_init__(self):
        if not is_trusted_image_url(self.url):
            raise UntrustedSourceError(
                f"Refusing external image URL '{self.url}'. "
                "Only http(s) URLs ending in .bin are accepted."
            )

    @property
    def name(self) -> str:
        return self.url.rsplit("/", 1)[-1]


ImageSource = Union[LocalImageSource, RemoteImageSource]


def image_source_from_url(url: Optional[str]) -> Optional[RemoteImageSource]:
    """
    Build a remote source from an externally supplied URL.

    Non-matching URLs are ignored (None) so a bad ``image`` parameter falls
    back to the local file picker.
    """
    if not url:
        return None
    if not is_trusted_image_url(url):
        logger.warning("Ignoring external image URL that does not match http(s)://....bin: %s", url)
        return None
    return RemoteImageSource(url)


def describe_source(source: ImageSource) -> str:
    """Short human-readable description of a source."""
    if isinstance(source, RemoteImageSource):
        return f"external image {source.url} (untrusted)"
    if source.is_empty:
        return "no file selected"
    return f"local file {source.name}"


def _read_local(source: LocalImageSource) -> bytes:
    if source.is_empty:
        raise SourceUnavailableError("No image file has been supplied")

    if isinstance(source.file, (str, Path)):
        path = Path(source.file)
        try:
            return path.read_bytes()
        except OSError as e:
            raise SourceUnavailableError(f"Cannot read image file {path}: {e}") from e

    handle = source.file
    try:
        # Rewind so repeated resolution yields the same bytes
        if getattr(handle, "seekable", None) and handle.seekable():
            handle.seek(0)
        data = handle.read()
    except (OSError, ValueError) as e:
        raise SourceUnavailableError(f"Cannot read supplied image: {e}") from e
    if data is None:
        raise SourceUnavailableError("Supplied image stream returned no data")
    return bytes(data)


def _fetch_remote(
    source: RemoteImageSource,
    timeout: Optional[float],
    session: Optional[requests.Session],
) -> bytes:
    getter = session.get if session is not None else requests.get
    logger.info("Fetching external image %s", source.url)
    try:
        resp = getter(source.url, timeout=timeout)
    except requests.RequestException as e:
        raise SourceUnavailableError(f"Network error fetching {source.url}: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise FetchFailedError(source.url, resp.status_code)

    data = bytes(resp.content)
    logger.debug("Fetched %d bytes from %s", len(data), source.url)
    return data


def resolve_image(
    source: ImageSource,
    *,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> bytes:
    """
    Resolve a source into the raw payload to flash.

    Args:
        source: Local or remote image source
        timeout: Optional HTTP timeout in seconds (remote only)
        session: Optional requests session (remote only)

    Returns:
        Image bytes; may be empty.

    Raises:
        SourceUnavailableError: No file supplied, unreadable file, or network failure
        FetchFailedError: Remote server returned a non-success status
    """
    if isinstance(source, RemoteImageSource):
        return _fetch_remote(source, timeout, session)
    return _read_local(source)
