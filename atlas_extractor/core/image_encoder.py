# ==============================================================================
# IMAGE ENCODER MODULE
# ==============================================================================
# Serializes decoded RGBA pixel buffers to PNG using Pillow.
#
# The pixel buffer is wrapped in a numpy (height, width, 4) array without
# copying and handed to Image.fromarray().
#
# Usage:
#   encoder = ImageEncoder(compress_level=6)
#   png_bytes = encoder.encode(width, height, pixels)
#   encoder.save(atlas_image, "result/ui/main.png")
# ==============================================================================

import io
import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class ImageEncodeError(ValueError):
    """Pixel data cannot be turned into an image file."""


class ImageEncoder:
    """
    PNG encoder for RGBA buffers.

    Attributes:
        compress_level (int): zlib level 0-9
        optimize (bool):      Let Pillow search for the smallest encoding
    """

    FORMAT = 'PNG'

    def __init__(self, compress_level: int = 6, optimize: bool = False):
        self.compress_level = compress_level
        self.optimize = optimize

    def to_image(self, width: int, height: int, pixels) -> 'Image.Image':
        """
        Build a PIL RGBA image from a raw buffer.

        Raises:
            ImageEncodeError: zero-area image or wrong buffer length
        """
        if width <= 0 or height <= 0:
            raise ImageEncodeError(
                f"cannot encode a zero-area image ({width}x{height}) as {self.FORMAT}"
            )

        expected = width * height * 4
        if len(pixels) != expected:
            raise ImageEncodeError(
                f"pixel buffer is {len(pixels)} bytes, expected {expected} "
                f"for {width}x{height}"
            )

        arr = np.frombuffer(pixels, dtype=np.uint8).reshape((height, width, 4))
        return Image.fromarray(arr)

    def encode(self, width: int, height: int, pixels) -> bytes:
        """
        Encode an RGBA buffer to PNG bytes.

        Args:
            width:  Image width
            height: Image height
            pixels: width * height * 4 bytes, RGBA, row-major

        Returns:
            PNG file contents
        """
        image = self.to_image(width, height, pixels)
        out = io.BytesIO()
        image.save(out, self.FORMAT,
                   compress_level=self.compress_level,
                   optimize=self.optimize)
        return out.getvalue()

    def encode_atlas(self, atlas) -> bytes:
        """Encode anything with width, height and pixels (e.g. AtlasImage)."""
        return self.encode(atlas.width, atlas.height, atlas.pixels)

    def save(self, atlas, filepath: str) -> int:
        """
        Encode an atlas and write it to `filepath`.

        Returns:
            Number of bytes written
        """
        data = self.encode_atlas(atlas)
        with open(filepath, 'wb') as f:
            f.write(data)
        logger.debug("Wrote %s (%d bytes)", filepath, len(data))
        return len(data)
