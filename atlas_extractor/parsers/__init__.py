# ==============================================================================
# PARSERS MODULE
# ==============================================================================
# File format support for .data atlas images.
#
# Supported formats:
#   - DATA: Run-length encoded RGB/RGBA atlas images (read and write)
#
# Additional utilities:
#   - BatchConverter: Mass .data -> PNG conversion of a directory tree
# ==============================================================================

from .errors import (
    AtlasDecodeError, AtlasEncodeError, HeaderTooShortError, ImageTooLargeError,
    SizeMismatchError, TruncatedError, ZeroCountError,
)
from .atlas_parser import (
    AtlasDecoder, AtlasHeader, AtlasImage, AtlasRun, decode_atlas, iter_runs,
)
from .atlas_writer import AtlasWriter, encode_atlas
from .batch_converter import BatchConverter, ConversionResult, FileResult

__all__ = [
    # Errors
    'AtlasDecodeError', 'AtlasEncodeError', 'HeaderTooShortError',
    'ImageTooLargeError', 'SizeMismatchError', 'TruncatedError', 'ZeroCountError',

    # Decoder
    'AtlasDecoder', 'AtlasHeader', 'AtlasImage', 'AtlasRun', 'decode_atlas', 'iter_runs',

    # Writer
    'AtlasWriter', 'encode_atlas',

    # Batch Converter
    'BatchConverter', 'ConversionResult', 'FileResult',
]
