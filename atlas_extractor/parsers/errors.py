# ==============================================================================
# ATLAS FORMAT ERRORS
# ==============================================================================
# Exception hierarchy raised by the .data atlas decoder and writer.
#
# Every decode failure derives from AtlasDecodeError so callers (the batch
# converter, the CLI) can catch the whole family with one except clause.
# All of them are deterministic parse failures: retrying is pointless.
#
#   AtlasDecodeError
#     ├── HeaderTooShortError   buffer shorter than the 9-byte header
#     ├── ImageTooLargeError    width*height above the configured cap
#     ├── ZeroCountError        a run declares a pixel count of zero
#     ├── TruncatedError        a run extends past the end of the buffer
#     └── SizeMismatchError     run counts do not add up to width*height
#
#   AtlasEncodeError            pixels cannot be packed into .data
# ==============================================================================


class AtlasDecodeError(ValueError):
    """Base class for all .data decoding failures."""


class HeaderTooShortError(AtlasDecodeError):
    """The buffer does not even hold a complete header."""

    def __init__(self, length: int, required: int):
        self.length = length
        self.required = required
        super().__init__(
            f"header too short: {length} bytes (need at least {required})"
        )


class ImageTooLargeError(AtlasDecodeError):
    """Declared dimensions exceed the decoder's pixel limit."""

    def __init__(self, width: int, height: int, limit: int):
        self.width = width
        self.height = height
        self.pixels = width * height
        self.limit = limit
        super().__init__(
            f"image too large: {width}x{height} = {self.pixels} pixels "
            f"(limit {limit})"
        )


class ZeroCountError(AtlasDecodeError):
    """A run with a count of zero was found at `offset`."""

    def __init__(self, offset: int):
        self.offset = offset
        super().__init__(f"count should not be zero (run at offset {offset})")


class TruncatedError(AtlasDecodeError):
    """A run needs more bytes than the buffer has left."""

    def __init__(self, offset: int, needed: int, available: int):
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"truncated run at offset {offset}: "
            f"need {needed} bytes, have {available}"
        )


class SizeMismatchError(AtlasDecodeError):
    """Sum of run counts differs from the declared width*height."""

    def __init__(self, width: int, height: int, actual: int):
        self.width = width
        self.height = height
        self.expected = width * height
        self.actual = actual
        super().__init__(
            f"size does not match: {width}x{height} = {self.expected} != {actual}"
        )


class AtlasEncodeError(ValueError):
    """Raised when pixel data cannot be written as a .data atlas."""
