"""Two-pass image handling for the Markdown converter.

Pass one gathers every image reference from the token stream. Pass two
resolves each distinct reference exactly once, so building blocks afterwards
never touches the filesystem or the network.
"""
from __future__ import annotations

import base64
import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol
from urllib.parse import unquote, urlparse

from PIL import Image, UnidentifiedImageError

from .config import ConverterConfig
from .errors import ImageResolutionError
from .model import AspectRatio, Blob, ImageInfo

logger = logging.getLogger(__name__)

BlobUploader = Callable[[bytes, str], Blob]

# CIDv1 prefix: version 1, raw codec, sha2-256 multihash of 32 bytes.
_CID_RAW_SHA256_PREFIX = bytes([0x01, 0x55, 0x12, 0x20])


class ImageResolver(Protocol):
    def resolve(self, reference: str) -> ImageInfo:
        """Return blob identity and pixel dimensions for ``reference``."""
        ...


def content_cid(data: bytes) -> str:
    digest = hashlib.sha256(data).digest()
    encoded = base64.b32encode(_CID_RAW_SHA256_PREFIX + digest).decode("ascii")
    return "b" + encoded.lower().rstrip("=")


@dataclass
class LocalImageResolver:
    """Resolve local image files, measuring them with Pillow.

    ``blob_uploader`` receives the raw bytes and MIME type and returns the
    stored blob. Without one, the blob is addressed by the CID of its bytes.
    """

    blob_uploader: Optional[BlobUploader] = None

    def resolve(self, reference: str) -> ImageInfo:
        data = Path(reference).read_bytes()
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                image_format = img.format or ""
        except UnidentifiedImageError as exc:
            raise ValueError(f"failed to decode image: {exc}") from exc

        mime_type = Image.MIME.get(image_format) or f"image/{image_format.lower()}"
        if self.blob_uploader is not None:
            blob = self.blob_uploader(data, mime_type)
        else:
            blob = Blob(ref=content_cid(data), mime_type=mime_type, size=len(data))
        return ImageInfo(blob=blob, width=width, height=height)


def gather_images(tokens: Iterable) -> List[str]:
    """Collect image sources in document order, duplicates included."""
    references: List[str] = []
    for tok in tokens:
        if tok.type == "image":
            references.append(tok.attrGet("src") or "")
        if tok.children:
            references.extend(gather_images(tok.children))
    return references


def resolve_images(
    references: Iterable[str],
    resolver: Optional[ImageResolver],
    base_path: str | Path | None = None,
) -> Dict[str, ImageInfo]:
    resolved: Dict[str, ImageInfo] = {}
    if resolver is None:
        return resolved

    for reference in references:
        if reference in resolved:
            continue
        target = _join_reference(reference, base_path)
        try:
            info = resolver.resolve(target)
        except Exception as exc:
            raise ImageResolutionError(reference, exc) from exc
        resolved[reference] = info

    logger.debug("Resolved %d distinct image reference(s)", len(resolved))
    return resolved


def placeholder_image(config: ConverterConfig) -> tuple[Blob, AspectRatio]:
    blob = Blob(ref=config.placeholder_ref, mime_type=config.placeholder_mime_type, size=0)
    return blob, AspectRatio(width=1, height=1)


def _join_reference(reference: str, base_path: str | Path | None) -> str:
    if _is_url(reference):
        return reference
    local = unquote(reference)
    if base_path and not Path(local).is_absolute():
        return str(Path(base_path) / local)
    return local


def _is_url(reference: str) -> bool:
    # Single-letter schemes are Windows drive letters, not URLs.
    scheme = urlparse(reference).scheme
    return len(scheme) > 1
