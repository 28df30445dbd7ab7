# ==============================================================================
# CORE MODULE INIT
# ==============================================================================
# Core building blocks for Atlas Extractor:
#   - FileWalker: Source discovery and output tree mirroring
#   - ImageEncoder: PNG serialization via Pillow
#   - Database: Conversion history (SQLite + SQLAlchemy)
#   - FileHasher: MD5/SHA256 for incremental conversion
#   - Config: Application configuration management
#   - Paths: Per-user data locations
#
# Usage:
#   from atlas_extractor.core import FileWalker, ImageEncoder
#   from atlas_extractor.core.config import get_config
# ==============================================================================

from .paths import Paths
from .config import Config, get_config
from .hasher import FileHasher
from .database import Database, ConversionRecord
from .file_walker import FileWalker
from .image_encoder import ImageEncoder, ImageEncodeError

__all__ = [
    'Paths',
    'Config',
    'get_config',
    'FileHasher',
    'Database',
    'ConversionRecord',
    'FileWalker',
    'ImageEncoder',
    'ImageEncodeError',
]
