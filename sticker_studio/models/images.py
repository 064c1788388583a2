# sticker_studio/models/images.py
"""Opaque image payload passed between the client, compositor and ledger."""

import base64
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ImagePayload:
    """Encoded image bytes plus their MIME type."""

    data: bytes = field(repr=False)
    mime_type: str = "image/png"

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("ImagePayload requires non-empty data")

    @property
    def extension(self) -> str:
        """File extension matching the MIME type (without dot)."""
        return {
            "image/png": "png",
            "image/jpeg": "jpg",
            "image/webp": "webp",
            "image/gif": "gif",
        }.get(self.mime_type, "bin")

    def to_data_url(self) -> str:
        """Encode as a data: URL."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @classmethod
    def from_data_url(cls, url: str) -> "ImagePayload":
        """
        Decode a data: URL.

        Raises:
            ValueError: If the URL is not a base64 data URL
        """
        if not url.startswith("data:") or ";base64," not in url:
            raise ValueError("Expected a base64 data URL")
        header, encoded = url.split(",", 1)
        mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
        return cls(data=base64.b64decode(encoded), mime_type=mime_type)

    @classmethod
    def from_path(cls, path: str | Path) -> "ImagePayload":
        """Read an image file, guessing the MIME type from its suffix."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), mime_type=mime_type or "image/jpeg")
