# ==============================================================================
# FILE HASHER MODULE
# ==============================================================================
# File hashing utilities used by incremental conversion to tell whether a
# .data file changed since it was last converted.
#
# Usage:
#   hasher = FileHasher()
#   md5_hash = hasher.hash_file("ui/atlas_0.data")
#   md5_hash = hasher.hash_bytes(file_contents)
#
# Performance notes:
#   - Uses 256KB chunks for optimal SSD throughput
#   - Memory-mapped reads for very large files
# ==============================================================================

import hashlib
import logging
import mmap
import os
from typing import Optional

logger = logging.getLogger(__name__)

ALGORITHMS = ('md5', 'sha256')


class FileHasher:
    """
    File hashing utility.

    Attributes:
        algorithm (str):  'md5' (default, fast) or 'sha256'
        chunk_size (int): Size of chunks to read when hashing files
    """

    # 256KB chunks
    DEFAULT_CHUNK_SIZE = 262144

    # Threshold for using memory-mapped files (10MB)
    MMAP_THRESHOLD = 10 * 1024 * 1024

    def __init__(self, algorithm: str = 'md5', chunk_size: int = DEFAULT_CHUNK_SIZE):
        if algorithm not in ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def _new(self):
        return hashlib.new(self.algorithm)

    def hash_bytes(self, data: bytes) -> str:
        """
        Hash raw bytes.

        Use this when the file contents are already in memory, as they are
        during conversion.

        Example:
            >>> FileHasher().hash_bytes(b"Hello World")
            'b10a8db164e0754105b7a99be72e3fe5'
        """
        h = self._new()
        h.update(data)
        return h.hexdigest()

    def hash_file(self, file_path: str) -> Optional[str]:
        """
        Hash a file on disk.

        Returns:
            Hex digest, or None if the file does not exist

        Raises:
            OSError: the file exists but cannot be read
        """
        if not os.path.isfile(file_path):
            return None

        if os.path.getsize(file_path) > self.MMAP_THRESHOLD:
            return self._hash_file_mmap(file_path)

        h = self._new()
        with open(file_path, 'rb') as f:
            buffer = bytearray(self.chunk_size)
            mv = memoryview(buffer)
            while True:
                n = f.readinto(mv)
                if not n:
                    break
                h.update(mv[:n])

        return h.hexdigest()

    def _hash_file_mmap(self, file_path: str) -> str:
        """Hash a large file using memory-mapped I/O."""
        h = self._new()

        with open(file_path, 'rb') as f:
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as mm:
                file_size = mm.size()
                offset = 0
                while offset < file_size:
                    chunk_end = min(offset + self.chunk_size * 4, file_size)
                    h.update(mm[offset:chunk_end])
                    offset = chunk_end

        logger.debug("mmap hashed %s (%d bytes)", file_path, file_size)
        return h.hexdigest()

    @staticmethod
    def compare_hashes(hash1: Optional[str], hash2: Optional[str]) -> bool:
        """Compare two hash strings (case-insensitive). None never matches."""
        if hash1 is None or hash2 is None:
            return False
        return hash1.lower() == hash2.lower()

