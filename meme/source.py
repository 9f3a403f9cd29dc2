"""
Image source adapter - normalizes every acquisition path into a CanonicalImage.

Handles:
1. Local uploads (path, open binary file or raw bytes)
2. Remote templates fetched over HTTP
3. Payload + media type pairs returned by the AI edit service

The payload is always verified with Pillow before it is accepted, so
downstream code never sees a partial or undecodable image.
"""

import io
import base64
import logging
import mimetypes
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Tuple, Union, BinaryIO

import httpx
from PIL import Image

from .errors import SourceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0

# Pillow raises SyntaxError for some truncated headers
_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass(frozen=True)
class CanonicalImage:
    """Encoded image bytes plus the media type of that encoding."""
    payload: bytes
    media_type: str

    def open(self) -> Image.Image:
        """Decode the payload into a fully loaded PIL image."""
        try:
            image = Image.open(io.BytesIO(self.payload))
            image.load()
        except _DECODE_ERRORS as e:
            raise SourceUnavailable(f"Cannot decode {self.media_type} image: {e}") from e
        return image

    @property
    def size(self) -> Tuple[int, int]:
        """Natural (width, height) of the encoded image, read from the header only."""
        try:
            with Image.open(io.BytesIO(self.payload)) as image:
                return image.size
        except _DECODE_ERRORS as e:
            raise SourceUnavailable(f"Cannot read {self.media_type} image size: {e}") from e

    def to_base64(self) -> str:
        return base64.b64encode(self.payload).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.to_base64()}"

    @classmethod
    def from_data_url(cls, data_url: str) -> "CanonicalImage":
        """Parse a ``data:<mime>;base64,<data>`` URL and verify the payload."""
        try:
            header, data = data_url.split(",", 1)
            media_type = header.split(";")[0].split(":")[1]
            payload = base64.b64decode(data, validate=True)
        except (ValueError, IndexError) as e:
            raise SourceUnavailable(f"Malformed data URL: {e}") from e
        return decode_payload(payload, media_type)


ImageSourceInput = Union[CanonicalImage, httpx.Response, Tuple[bytes, str], bytes, str, Path, BinaryIO]


def decode_payload(payload: bytes, declared_type: Optional[str] = None) -> CanonicalImage:
    """
    Verify that payload is a complete still image and build a CanonicalImage.

    The media type comes from the decoded format; the declared type is only
    used when Pillow has no MIME mapping for that format.

    Raises:
        SourceUnavailable: payload is empty, corrupt or not an image
    """
    if not payload:
        raise SourceUnavailable("Empty image payload")

    try:
        with Image.open(io.BytesIO(payload)) as image:
            image_format = image.format
            image.load()
    except _DECODE_ERRORS as e:
        raise SourceUnavailable(f"Unsupported or corrupt image: {e}") from e

    media_type = Image.MIME.get(image_format) if image_format else None
    media_type = media_type or declared_type
    if not media_type:
        raise SourceUnavailable(f"Unknown media type for image format {image_format}")

    return CanonicalImage(payload=bytes(payload), media_type=media_type)


def _from_response(response: httpx.Response) -> CanonicalImage:
    if not response.is_success:
        raise SourceUnavailable(f"Image request failed with HTTP {response.status_code}")
    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    return decode_payload(response.content, content_type or None)


def normalize(source: ImageSourceInput) -> CanonicalImage:
    """
    Normalize any acquired image into a CanonicalImage.

    Args:
        source: CanonicalImage, httpx.Response, (payload, media_type) pair,
            raw bytes, filesystem path, or a readable binary file object

    Returns:
        A new, verified CanonicalImage

    Raises:
        SourceUnavailable: the source cannot be read or decoded
    """
    if isinstance(source, CanonicalImage):
        return decode_payload(source.payload, source.media_type)

    if isinstance(source, httpx.Response):
        return _from_response(source)

    if isinstance(source, tuple):
        payload, media_type = source
        return decode_payload(payload, media_type)

    if isinstance(source, (bytes, bytearray)):
        return decode_payload(bytes(source))

    if isinstance(source, (str, Path)):
        try:
            payload = Path(source).read_bytes()
        except OSError as e:
            raise SourceUnavailable(f"Cannot read {source}: {e}") from e
        return decode_payload(payload, mimetypes.guess_type(str(source))[0])

    if hasattr(source, "read"):
        try:
            payload = source.read()
        except OSError as e:
            raise SourceUnavailable(f"Cannot read upload: {e}") from e
        return decode_payload(payload, getattr(source, "content_type", None))

    raise SourceUnavailable(f"Unsupported image source: {type(source).__name__}")


async def fetch_template(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT
) -> CanonicalImage:
    """
    Fetch a remote template image and normalize it.

    Args:
        url: Template image URL
        client: Optional shared client. A short-lived one is created if None.
        timeout: Timeout in seconds for the short-lived client

    Returns:
        CanonicalImage of the fetched template

    Raises:
        SourceUnavailable: network error, HTTP error status or undecodable body
    """
    logger.info(f"Fetching template: {url[:80]}")

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned_client:
                response = await owned_client.get(url)
        else:
            response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"Template fetch failed: {e}")
        raise SourceUnavailable(f"Failed to fetch template: {e}") from e

    image = normalize(response)
    logger.info(f"Template loaded: {image.media_type}, {len(image.payload)} bytes")
    return image
