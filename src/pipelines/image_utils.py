"""
Image processing utilities for the image-to-image pipeline.

Uploads are validated and normalized to the square JPEG the transform
provider expects.
"""

from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ClientInputError

ALLOWED_FORMATS = ("JPEG", "PNG")


def validate_upload(contents: bytes, max_bytes: int) -> None:
    """
    Check an uploaded image before any decoding work.

    Args:
        contents: Raw upload bytes
        max_bytes: Upper bound on the payload size

    Raises:
        ClientInputError: If the upload is empty or too large (413)
    """
    if not contents:
        raise ClientInputError("Image and prompt are required")
    if len(contents) > max_bytes:
        raise ClientInputError(
            f"Image size exceeds {max_bytes // (1024 * 1024)}MB limit",
            status_code=413
        )


def open_image(contents: bytes) -> Image.Image:
    """
    Decode upload bytes, accepting only JPEG and PNG.

    Raises:
        ClientInputError: If the bytes are not a readable JPEG/PNG image
    """
    try:
        image = Image.open(BytesIO(contents))
        image.verify()
        # verify() leaves the image unusable, reopen
        image = Image.open(BytesIO(contents))
        # verify() barely checks JPEG data; force a full decode
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise ClientInputError(f"Invalid image file: {str(e)}")

    if image.format not in ALLOWED_FORMATS:
        raise ClientInputError(f"Unsupported image format: {image.format}")

    return image


def cover_fit(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    """Scale to cover `size` and crop the overflow evenly from both sides."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    return ImageOps.fit(
        image,
        size,
        method=Image.Resampling.LANCZOS,
        centering=(0.5, 0.5)
    )


def encode_jpeg(image: Image.Image) -> bytes:
    """Encode at maximum quality with 4:4:4 chroma (no subsampling)."""
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=100, subsampling=0)
    return buffer.getvalue()


def normalize_image(contents: bytes, target_size: int = 1024) -> bytes:
    """
    Turn an uploaded JPEG/PNG into a target_size x target_size JPEG.

    Args:
        contents: Raw upload bytes
        target_size: Edge length of the square output in pixels

    Returns:
        JPEG bytes
    """
    image = open_image(contents)
    fitted = cover_fit(image, (target_size, target_size))
    return encode_jpeg(fitted)


def to_data_uri(b64_payload: str, mime_type: str = "image/png") -> str:
    """Wrap an already base64-encoded payload as a data URI."""
    return f"data:{mime_type};base64,{b64_payload}"
