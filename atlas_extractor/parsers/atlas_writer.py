# ==============================================================================
# ATLAS (.data) FILE WRITER
# ==============================================================================
# Packs RGBA pixels into the run-length encoded .data atlas format.
# This is the exact inverse of atlas_parser.AtlasDecoder.
#
# ENCODING RULES:
# ---------------
#   - Consecutive identical pixels are merged into a run (max 255 per run)
#   - Alpha atlases: any pixel with alpha 0 is written as the 2-byte
#     transparent run (its colour is discarded), everything else as
#     count A B G R
#   - Opaque atlases: count B G R, every pixel must have alpha 255
#
# USAGE EXAMPLE:
# --------------
#   writer = AtlasWriter()
#   data = writer.from_image(Image.open("edited.png"))
#   writer.save(Image.open("edited.png"), "atlas_0.data")
#
#   data = encode_atlas(2, 1, bytes([255, 0, 0, 255, 255, 0, 0, 255]))
# ==============================================================================

import logging
from typing import Iterator, Optional, Tuple

from PIL import Image

from .atlas_parser import (
    AtlasHeader,
    BytesLike,
    FLAG_ALPHA,
    MAX_RUN_LENGTH,
    OPAQUE_ALPHA,
    TRANSPARENT_MARKER,
    TRANSPARENT_PIXEL,
)
from .errors import AtlasEncodeError

logger = logging.getLogger(__name__)

UINT32_MAX = 0xFFFFFFFF

TRANSPARENT_BYTES = bytes(TRANSPARENT_PIXEL)


def _pixel_runs(pixels: BytesLike, has_alpha: bool) -> Iterator[Tuple[int, bytes]]:
    """Yield (count, rgba) for each run of identical pixels."""
    run_color = None
    count = 0

    for o in range(0, len(pixels), 4):
        color = bytes(pixels[o:o + 4])
        if has_alpha and color[3] == 0:
            color = TRANSPARENT_BYTES

        if color == run_color and count < MAX_RUN_LENGTH:
            count += 1
        else:
            if count:
                yield count, run_color
            run_color, count = color, 1

    if count:
        yield count, run_color


def encode_atlas(width: int, height: int, pixels: BytesLike,
                 has_alpha: Optional[bool] = None) -> bytes:
    """
    Encode an RGBA buffer as a .data atlas.

    Args:
        width:     Image width in pixels
        height:    Image height in pixels
        pixels:    width * height * 4 bytes, RGBA, row-major
        has_alpha: Force the alpha flag. None picks alpha mode only when
                   some pixel is not fully opaque.

    Returns:
        Complete .data file contents

    Raises:
        AtlasEncodeError: bad dimensions, wrong buffer length, or
                          translucent pixels with has_alpha=False
    """
    if not (0 <= width <= UINT32_MAX and 0 <= height <= UINT32_MAX):
        raise AtlasEncodeError(f"dimensions out of range: {width}x{height}")

    expected = width * height * 4
    if len(pixels) != expected:
        raise AtlasEncodeError(
            f"pixel buffer is {len(pixels)} bytes, expected {expected} "
            f"for {width}x{height}"
        )

    translucent = any(a != OPAQUE_ALPHA for a in pixels[3::4])
    if has_alpha is None:
        has_alpha = translucent
    elif not has_alpha and translucent:
        raise AtlasEncodeError("image has non-opaque pixels but alpha is disabled")

    header = AtlasHeader(width, height, FLAG_ALPHA if has_alpha else 0)
    out = bytearray(header.to_bytes())
    runs = 0

    for count, (r, g, b, a) in _pixel_runs(pixels, has_alpha):
        runs += 1
        if not has_alpha:
            out += bytes((count, b, g, r))
        elif a == 0:
            out += bytes((count, TRANSPARENT_MARKER))
        else:
            out += bytes((count, a, b, g, r))

    logger.debug("encoded %dx%d atlas: %d runs, %d bytes", width, height, runs, len(out))
    return bytes(out)


class AtlasWriter:
    """
    Writer for .data atlas files.

    Attributes:
        has_alpha: Alpha flag to write, None to auto-detect per image
    """

    def __init__(self, has_alpha: Optional[bool] = None):
        self.has_alpha = has_alpha

    def encode(self, width: int, height: int, pixels: BytesLike) -> bytes:
        return encode_atlas(width, height, pixels, self.has_alpha)

    def from_image(self, image: 'Image.Image') -> bytes:
        """Encode any PIL image (converted to RGBA first)."""
        if image.mode != 'RGBA':
            image = image.convert('RGBA')
        return self.encode(image.width, image.height, image.tobytes())

    def save(self, image: 'Image.Image', filepath: str) -> int:
        """
        Encode an image and write it to disk.

        Returns:
            Number of bytes written
        """
        data = self.from_image(image)
        with open(filepath, 'wb') as f:
            f.write(data)
        return len(data)
