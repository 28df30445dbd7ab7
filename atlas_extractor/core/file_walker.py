# ==============================================================================
# FILE WALKER MODULE
# ==============================================================================
# Discovers source files under an input root and maps them to output paths
# in a mirrored directory tree.
#
#   input/ui/main.data      ->  result/ui/main.png
#   input/fx/a/b/glow.data  ->  result/fx/a/b/glow.png
#
# Usage:
#   walker = FileWalker()
#   files = walker.list_data_files("E:/game/atlas")
#   walker.ensure_parent_dirs("result", files)
#   for rel in files:
#       out = walker.output_path_for("result", rel)
# ==============================================================================

import logging
import os
from typing import Iterable, List

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_EXTENSION = '.data'
DEFAULT_OUTPUT_EXTENSION = '.png'


class FileWalker:
    """
    Source discovery and output directory mirroring.

    Attributes:
        source_extension (str): Suffix of files to pick up (exact match)
        output_extension (str): Suffix that replaces it on output files
    """

    def __init__(self, source_extension: str = DEFAULT_SOURCE_EXTENSION,
                 output_extension: str = DEFAULT_OUTPUT_EXTENSION):
        self.source_extension = source_extension
        self.output_extension = output_extension

    def list_data_files(self, root: str) -> List[str]:
        """
        List every source file under `root`, recursing into subdirectories.

        Args:
            root: Directory to scan

        Returns:
            Relative paths (OS separators), sorted so the order is stable

        Raises:
            FileNotFoundError: root does not exist or is not a directory
        """
        if not os.path.isdir(root):
            raise FileNotFoundError(f"path does not exist: {root}")

        result = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                if filename.endswith(self.source_extension):
                    full_path = os.path.join(dirpath, filename)
                    result.append(os.path.relpath(full_path, root))

        logger.debug("Found %d %s files under %s", len(result), self.source_extension, root)
        return result

    def ensure_parent_dirs(self, output_root: str, relative_paths: Iterable[str]) -> int:
        """
        Create every output directory needed for `relative_paths`.

        Each distinct directory is created once. Existing directories are
        left alone, so calling this twice is harmless.

        Returns:
            Number of distinct directories ensured
        """
        directories = {os.path.dirname(rel) for rel in relative_paths}
        for directory in sorted(directories):
            os.makedirs(os.path.join(output_root, directory), exist_ok=True)
        return len(directories)

    def output_path_for(self, output_root: str, relative_path: str) -> str:
        """
        Map a relative source path to its output file path.

        Only a trailing source extension is replaced.
        """
        base = relative_path
        if base.endswith(self.source_extension):
            base = base[:-len(self.source_extension)]
        return os.path.join(output_root, base + self.output_extension)
