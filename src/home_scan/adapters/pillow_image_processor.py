"""Pillow-based normalization of uploaded images."""

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from home_scan.domain.errors import ValidationFailedError
from home_scan.services.images import ImageProcessor, ProcessedImage


@dataclass
class PillowImageProcessor(ImageProcessor):
    """Re-encodes uploads as bounded JPEGs with a square thumbnail."""

    max_dimension: int = 1600
    quality: int = 80
    thumbnail_size: int = 300
    thumbnail_quality: int = 70

    def process(self, data: bytes) -> ProcessedImage:
        """Rotate per EXIF, bound the size, and build a thumbnail."""
        try:
            with Image.open(io.BytesIO(data)) as source:
                image = ImageOps.exif_transpose(source).convert("RGB")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise ValidationFailedError("Invalid or corrupted image file") from exc

        original = image.copy()
        original.thumbnail((self.max_dimension, self.max_dimension))
        thumbnail = ImageOps.fit(image, (self.thumbnail_size, self.thumbnail_size))
        return ProcessedImage(
            original=_encode_jpeg(original, self.quality),
            thumbnail=_encode_jpeg(thumbnail, self.thumbnail_quality),
        )


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
