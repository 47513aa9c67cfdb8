"""Image encoding for provider transport and decoding of provider output."""

import base64
import binascii
import io
from dataclasses import dataclass
from typing import Union

from PIL import Image, UnidentifiedImageError

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass
class EncodedImage:
    """Image bytes ready to send to (or received from) a provider."""
    data: bytes
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @property
    def extension(self) -> str:
        return _EXTENSIONS.get(self.mime_type, "jpg")


def prepare_for_transport(
    raw: bytes,
    max_dimension: int = 800,
    quality: int = 80,
) -> EncodedImage:
    """Decode an input image, cap its longest side and re-encode as JPEG.

    Raises ValueError when the bytes are not a decodable image.
    """
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"not a decodable image ({exc})")

    img = img.convert("RGB")
    w, h = img.size
    scale = min(1.0, max_dimension / max(w, h))
    if scale < 1.0:
        img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return EncodedImage(data=buf.getvalue(), mime_type="image/jpeg")


def decode_generated_image(result: Union[EncodedImage, bytes, str, None]) -> EncodedImage:
    """Normalize provider output (raw bytes, base64 or a data URL) to EncodedImage.

    Returns an EncodedImage with empty data when nothing usable came back;
    callers treat that as an empty generation result.
    """
    if result is None:
        return EncodedImage(data=b"")
    if isinstance(result, EncodedImage):
        return result
    if isinstance(result, bytes):
        return EncodedImage(data=result, mime_type=_sniff_mime(result))

    text = result.strip()
    mime_type = "image/jpeg"
    if text.startswith("data:"):
        header, _, text = text.partition(",")
        mime_type = header[len("data:"):].split(";")[0] or mime_type
    try:
        data = base64.b64decode(text, validate=True) if text else b""
    except (binascii.Error, ValueError):
        data = b""
    return EncodedImage(data=data, mime_type=mime_type)


def _sniff_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
