# ==============================================================================
# ATLAS (.data) FILE PARSER
# ==============================================================================
# Decoder for run-length encoded atlas images stored as .data files.
#
# DATA FILE FORMAT:
# -----------------
#   offset 0..4   width  (uint32, little-endian)
#   offset 4..8   height (uint32, little-endian)
#   offset 8      flags  (uint8)  bit 0 = image has an alpha channel
#   offset 9..end sequence of runs
#
# RUN FORMAT:
# -----------
# Every run starts with a pixel count (1..255, zero is invalid) followed by
# a colour payload whose layout depends on the alpha flag:
#
#   alpha, first payload byte == 0   count 00          -> count x (0,0,0,0)
#   alpha, otherwise                 count A B G R     -> count x (R,G,B,A)
#   no alpha                         count B G R       -> count x (R,G,B,255)
#
# Colour channels are stored reversed on the wire. Existing .data files
# depend on this order, so it must not change.
#
# The sum of all run counts must equal width * height.
#
# USAGE EXAMPLE:
# --------------
#   decoder = AtlasDecoder()
#   image = decoder.load("ui/atlas_0.data")
#   print(image.width, image.height, len(image.pixels))
#   image.to_image().save("atlas_0.png")
#
#   # or, for one-off decoding of an in-memory buffer
#   image = decode_atlas(buffer)
# ==============================================================================

import logging
import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple, Union

import numpy as np
from PIL import Image

from .errors import (
    HeaderTooShortError,
    ImageTooLargeError,
    SizeMismatchError,
    TruncatedError,
    ZeroCountError,
)

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


# ==============================================================================
# CONSTANTS
# ==============================================================================

# width (u32), height (u32), flags (u8), no padding
HEADER_STRUCT = struct.Struct('<IIB')
HEADER_SIZE = HEADER_STRUCT.size

FLAG_ALPHA = 0x01

# Marker byte that turns an alpha run into a fully transparent run
TRANSPARENT_MARKER = 0x00
TRANSPARENT_PIXEL = (0, 0, 0, 0)
OPAQUE_ALPHA = 255

# Bytes occupied by each run kind on the wire (count byte included)
TRANSPARENT_RUN_SIZE = 2
RGBA_RUN_SIZE = 5
RGB_RUN_SIZE = 4

MAX_RUN_LENGTH = 255

# Default decode cap: 8192 x 8192 pixels (256 MB of RGBA)
DEFAULT_MAX_PIXELS = 8192 * 8192


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass(frozen=True)
class AtlasHeader:
    """
    The fixed 9-byte header at the start of every .data file.

    Attributes:
        width:  Image width in pixels
        height: Image height in pixels
        flags:  Raw flags byte (bit 0 = alpha)
    """
    width: int
    height: int
    flags: int = 0

    @property
    def has_alpha(self) -> bool:
        """Whether runs carry an alpha channel."""
        return bool(self.flags & FLAG_ALPHA)

    @property
    def pixel_count(self) -> int:
        """Number of pixels the body must describe."""
        return self.width * self.height

    @classmethod
    def from_bytes(cls, data: BytesLike) -> 'AtlasHeader':
        """
        Parse the header from the start of a buffer.

        Raises:
            HeaderTooShortError: buffer holds fewer than 9 bytes
        """
        if len(data) < HEADER_SIZE:
            raise HeaderTooShortError(len(data), HEADER_SIZE)
        width, height, flags = HEADER_STRUCT.unpack_from(data, 0)
        return cls(width=width, height=height, flags=flags)

    def to_bytes(self) -> bytes:
        return HEADER_STRUCT.pack(self.width, self.height, self.flags)


@dataclass(frozen=True)
class AtlasRun:
    """
    A single run as found in the body.

    Attributes:
        offset: Position of the run's count byte in the buffer
        count:  Number of pixels the run expands to
        color:  RGBA tuple in pixel order (already un-reversed)
        size:   Bytes the run occupies on the wire
    """
    offset: int
    count: int
    color: Tuple[int, int, int, int]
    size: int

    @property
    def is_transparent(self) -> bool:
        return self.size == TRANSPARENT_RUN_SIZE


@dataclass
class AtlasImage:
    """
    A fully decoded atlas.

    Attributes:
        width:     Image width in pixels
        height:    Image height in pixels
        has_alpha: Whether the source used alpha runs
        pixels:    width * height * 4 bytes, RGBA, row-major, top-left origin
    """
    width: int
    height: int
    has_alpha: bool = False
    pixels: bytearray = field(default_factory=bytearray, repr=False)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def get_pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """
        Get the RGBA value at (x, y).

        Raises:
            IndexError: coordinates outside the image
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        o = (y * self.width + x) * 4
        r, g, b, a = self.pixels[o:o + 4]
        return (r, g, b, a)

    def to_array(self) -> 'np.ndarray':
        """Return the pixels as a (height, width, 4) uint8 array sharing memory."""
        arr = np.frombuffer(self.pixels, dtype=np.uint8)
        return arr.reshape((self.height, self.width, 4))

    def to_image(self) -> 'Image.Image':
        """Convert to a PIL Image in RGBA mode."""
        return Image.fromarray(self.to_array())


# ==============================================================================
# RUN SCANNER
# ==============================================================================

def _scan_runs(data: BytesLike, has_alpha: bool) -> Iterator[AtlasRun]:
    """
    Walk the body of an atlas buffer run by run.

    Every read is bounds-checked before it happens, so malformed input ends
    in a TruncatedError instead of an out-of-range access.
    """
    end = len(data)
    i = HEADER_SIZE

    while i < end:
        count = data[i]
        if count == 0:
            raise ZeroCountError(i)

        if has_alpha:
            if i + 1 >= end:
                raise TruncatedError(i, TRANSPARENT_RUN_SIZE, end - i)

            if data[i + 1] == TRANSPARENT_MARKER:
                yield AtlasRun(i, count, TRANSPARENT_PIXEL, TRANSPARENT_RUN_SIZE)
                i += TRANSPARENT_RUN_SIZE
                continue

            if i + RGBA_RUN_SIZE > end:
                raise TruncatedError(i, RGBA_RUN_SIZE, end - i)

            # Wire order A, B, G, R
            a, b, g, r = data[i + 1:i + RGBA_RUN_SIZE]
            yield AtlasRun(i, count, (r, g, b, a), RGBA_RUN_SIZE)
            i += RGBA_RUN_SIZE
        else:
            if i + RGB_RUN_SIZE > end:
                raise TruncatedError(i, RGB_RUN_SIZE, end - i)

            # Wire order B, G, R
            b, g, r = data[i + 1:i + RGB_RUN_SIZE]
            yield AtlasRun(i, count, (r, g, b, OPAQUE_ALPHA), RGB_RUN_SIZE)
            i += RGB_RUN_SIZE


def iter_runs(data: BytesLike) -> Iterator[AtlasRun]:
    """
    Iterate over the runs of a complete atlas buffer without expanding pixels.

    Useful for statistics and validation of very large atlases. Header
    and body errors are raised exactly as decode() would raise them, but the
    size cross-check is left to the caller.
    """
    header = AtlasHeader.from_bytes(data)
    return _scan_runs(data, header.has_alpha)


# ==============================================================================
# ATLAS DECODER
# ==============================================================================

class AtlasDecoder:
    """
    Decoder for .data atlas files.

    The decoder holds configuration only, never per-call state, so a single
    instance can be shared between threads.

    Attributes:
        max_pixels: Reject images whose width*height exceeds this value
                    before allocating anything. 0 or None disables the cap.

    Usage:
        decoder = AtlasDecoder(max_pixels=4096 * 4096)
        image = decoder.decode(data)
        # or
        image = decoder.load("atlas.data")
    """

    def __init__(self, max_pixels: Optional[int] = DEFAULT_MAX_PIXELS):
        self.max_pixels = max_pixels

    def read_header(self, data: BytesLike) -> AtlasHeader:
        """Parse only the header of a buffer."""
        return AtlasHeader.from_bytes(data)

    def decode(self, data: BytesLike) -> AtlasImage:
        """
        Decode a complete .data buffer into RGBA pixels.

        Args:
            data: Raw file contents

        Returns:
            AtlasImage with exactly width * height * 4 pixel bytes

        Raises:
            HeaderTooShortError: fewer than 9 bytes
            ImageTooLargeError:  dimensions exceed max_pixels
            ZeroCountError:      a run has a count of zero
            TruncatedError:      a run extends past the buffer
            SizeMismatchError:   run counts do not sum to width * height
        """
        header = AtlasHeader.from_bytes(data)
        expected = header.pixel_count

        if self.max_pixels and expected > self.max_pixels:
            raise ImageTooLargeError(header.width, header.height, self.max_pixels)

        logger.debug(
            "size: %dx%d = %d flag: %d",
            header.width, header.height, expected, header.flags
        )

        pixels = bytearray()
        total = 0

        for run in _scan_runs(data, header.has_alpha):
            total += run.count
            # Past the declared size the buffer stops growing, but runs are
            # still validated so the mismatch reports the real total.
            if total <= expected:
                pixels += bytes(run.color) * run.count

        if total != expected:
            raise SizeMismatchError(header.width, header.height, total)

        return AtlasImage(
            width=header.width,
            height=header.height,
            has_alpha=header.has_alpha,
            pixels=pixels,
        )

    def load(self, filepath: str) -> AtlasImage:
        """
        Read and decode a .data file from disk.

        Raises:
            OSError: file cannot be read
            AtlasDecodeError: file contents are invalid
        """
        with open(filepath, 'rb') as f:
            data = f.read()
        return self.decode(data)


# ==============================================================================
# UTILITY FUNCTIONS
# ==============================================================================

def decode_atlas(data: BytesLike,
                 max_pixels: Optional[int] = DEFAULT_MAX_PIXELS) -> AtlasImage:
    """
    Decode a .data buffer in one call.

    Example:
        >>> image = decode_atlas(bytes([1, 0, 0, 0, 1, 0, 0, 0, 0, 1, 16, 32, 48]))
        >>> image.get_pixel(0, 0)
        (48, 32, 16, 255)
    """
    return AtlasDecoder(max_pixels=max_pixels).decode(data)


# ==============================================================================
# STANDALONE USAGE
# ==============================================================================
if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python atlas_parser.py <file.data> [output.png]")
        sys.exit(1)

    atlas = AtlasDecoder().load(sys.argv[1])
    print(f"Size:  {atlas.width}x{atlas.height}")
    print(f"Alpha: {atlas.has_alpha}")

    if len(sys.argv) > 2:
        atlas.to_image().save(sys.argv[2])
        print(f"Saved to: {sys.argv[2]}")
