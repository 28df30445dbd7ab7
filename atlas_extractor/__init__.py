# ==============================================================================
# ATLAS EXTRACTOR - SOURCE PACKAGE
# ==============================================================================
# Converts run-length encoded .data atlas images to PNG.
#
# Subpackages:
#   - core: Walking, PNG encoding, configuration, history, hashing
#   - parsers: The .data decoder/writer and the batch converter
#
# Entry points:
#   - main.py: development launcher
#   - atlas_extractor/cli.py: command-line interface (atlas-extractor)
# ==============================================================================

__version__ = "1.0.0"
__description__ = "Run-length encoded .data atlas to PNG converter"

from .core import Config, Database, FileWalker, ImageEncoder
from .parsers import AtlasDecoder, AtlasImage, AtlasWriter, BatchConverter, decode_atlas

__all__ = [
    '__version__',
    '__description__',

    # Core
    'Config',
    'Database',
    'FileWalker',
    'ImageEncoder',

    # Parsers
    'AtlasDecoder',
    'AtlasImage',
    'AtlasWriter',
    'BatchConverter',
    'decode_atlas',
]
