# ==============================================================================
# BATCH CONVERSION MODULE
# ==============================================================================
# Converts every .data atlas under a source directory to PNG, mirroring the
# directory structure under an output directory.
#
# Flow:
#   1. Scan the source tree for .data files          ("Scanning files...")
#   2. Create all output directories up front        ("Creating directories...")
#   3. For each file: read -> decode -> encode PNG -> write
#   4. Report the elapsed time                        ("Done in 1.23s.")
#
# Error policy:
#   - "abort" (default): the first decode or I/O error stops the batch
#   - "skip":            the failure is recorded and the batch continues
#
# Optional features:
#   - workers > 1 converts files on a thread pool, at most `workers` files
#     in flight (no ordering guarantee)
#   - with a Database attached every outcome is recorded, and incremental
#     mode skips files unchanged since their last successful conversion
#
# Usage:
#   converter = BatchConverter("E:/game/atlas", "result")
#   result = converter.convert_all(progress_callback=print_progress)
#   if not result.success:
#       print(result.errors[0])
# ==============================================================================

import logging
import os
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from itertools import islice
from typing import Callable, Dict, List, Optional

from ..core.database import STATUS_CONVERTED, STATUS_FAILED, Database
from ..core.file_walker import FileWalker
from ..core.hasher import FileHasher
from ..core.image_encoder import ImageEncodeError, ImageEncoder
from .atlas_parser import AtlasDecoder
from .errors import AtlasDecodeError

logger = logging.getLogger(__name__)

# Per-file outcomes (converted / failed are shared with the history table)
STATUS_UNCHANGED = 'unchanged'
STATUS_SKIPPED = 'skipped'

ERROR_POLICY_ABORT = 'abort'
ERROR_POLICY_SKIP = 'skip'

ProgressCallback = Callable[[int, int, str], None]
StatusCallback = Callable[[str], None]


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass
class FileResult:
    """
    Outcome of converting one file.

    Attributes:
        relative_path: Path relative to the source root
        output_path:   Where the image was (or would have been) written
        status:        converted / unchanged / skipped / failed
        width, height: Decoded size (converted files only)
        has_alpha:     Whether the atlas used alpha runs
        source_hash:   MD5 of the source, when hashing is enabled
        error:         Error message for failed files
        exception:     The exception behind a failure
    """
    relative_path: str
    output_path: str
    status: str
    width: Optional[int] = None
    height: Optional[int] = None
    has_alpha: Optional[bool] = None
    source_hash: Optional[str] = None
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)


@dataclass
class ConversionResult:
    """
    Result of a batch conversion.

    Attributes:
        success:     True when no file failed
        aborted:     True when the batch stopped early on an error
        output_path: Output root
        total:       Number of source files found
        converted:   Files decoded and written
        unchanged:   Files skipped by incremental mode
        skipped:     Files skipped because the output already existed
        failed:      Relative paths of failed files
        errors:      "path: message" for each failure
        elapsed:     Wall-clock seconds
        results:     Per-file results in completion order
    """
    success: bool = False
    aborted: bool = False
    output_path: str = ""
    total: int = 0
    converted: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    elapsed: float = 0.0
    results: List[FileResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)


# ==============================================================================
# BATCH CONVERTER CLASS
# ==============================================================================

class BatchConverter:
    """
    Batch .data -> PNG converter.

    Attributes:
        source_root:  Directory scanned for source files
        output_root:  Directory receiving the mirrored output tree
        decoder:      AtlasDecoder (shared by all workers, it is stateless)
        encoder:      ImageEncoder
        walker:       FileWalker
        workers:      Thread count, 1 = sequential
        error_policy: "abort" or "skip"
        overwrite:    Replace existing output files
        incremental:  Skip unchanged files (requires a database)
        database:     Optional conversion history
    """

    def __init__(self, source_root: str, output_root: str,
                 decoder: Optional[AtlasDecoder] = None,
                 encoder: Optional[ImageEncoder] = None,
                 walker: Optional[FileWalker] = None,
                 workers: int = 1,
                 error_policy: str = ERROR_POLICY_ABORT,
                 overwrite: bool = True,
                 incremental: bool = False,
                 database: Optional[Database] = None,
                 hasher: Optional[FileHasher] = None):
        if error_policy not in (ERROR_POLICY_ABORT, ERROR_POLICY_SKIP):
            raise ValueError(f"Unknown error policy: {error_policy}")
        if incremental and database is None:
            raise ValueError("Incremental conversion needs a history database")

        self.source_root = os.path.abspath(source_root)
        self.output_root = os.path.abspath(output_root)
        self.decoder = decoder or AtlasDecoder()
        self.encoder = encoder or ImageEncoder()
        self.walker = walker or FileWalker()
        self.workers = max(1, int(workers))
        self.error_policy = error_policy
        self.overwrite = overwrite
        self.incremental = incremental
        self.database = database
        self.hasher = hasher or (FileHasher() if database is not None else None)

    @classmethod
    def from_config(cls, config, source_root: str,
                    output_root: Optional[str] = None,
                    database: Optional[Database] = None) -> 'BatchConverter':
        """Build a converter from a Config instance."""
        return cls(
            source_root,
            output_root or config.output_path,
            decoder=AtlasDecoder(max_pixels=config.max_image_pixels or None),
            encoder=ImageEncoder(compress_level=config.png_compress_level),
            walker=FileWalker(config.source_extension, config.output_extension),
            workers=config.worker_threads,
            error_policy=config.error_policy,
            overwrite=config.overwrite_existing,
            incremental=config.incremental and database is not None,
            database=database,
        )

    # ==========================================================================
    # SINGLE FILE
    # ==========================================================================

    def convert_file(self, relative_path: str,
                     known_hashes: Optional[Dict[str, str]] = None) -> FileResult:
        """
        Convert one file.

        Args:
            relative_path: Path relative to source_root
            known_hashes:  {absolute source path: hash} of previous successful
                           conversions, used by incremental mode

        Returns:
            FileResult with status converted, unchanged or skipped

        Raises:
            OSError:          read or write failure
            AtlasDecodeError: invalid .data contents
            ImageEncodeError: decoded image cannot be written as PNG
        """
        source = os.path.join(self.source_root, relative_path)
        output = self.walker.output_path_for(self.output_root, relative_path)

        if not self.overwrite and os.path.exists(output):
            return FileResult(relative_path, output, STATUS_SKIPPED)

        source_hash = None

        # Unchanged files are hashed from disk and never loaded whole
        if (self.incremental and known_hashes and source in known_hashes
                and os.path.isfile(output)):
            source_hash = self.hasher.hash_file(source)
            if FileHasher.compare_hashes(known_hashes[source], source_hash):
                logger.debug("Unchanged since last conversion: %s", relative_path)
                return FileResult(relative_path, output, STATUS_UNCHANGED,
                                  source_hash=source_hash)

        with open(source, 'rb') as f:
            data = f.read()

        if self.hasher and source_hash is None:
            source_hash = self.hasher.hash_bytes(data)

        atlas = self.decoder.decode(data)
        png = self.encoder.encode_atlas(atlas)

        os.makedirs(os.path.dirname(output), exist_ok=True)
        with open(output, 'wb') as f:
            f.write(png)

        return FileResult(relative_path, output, STATUS_CONVERTED,
                          width=atlas.width, height=atlas.height,
                          has_alpha=atlas.has_alpha, source_hash=source_hash)

    def _process(self, relative_path: str,
                 known_hashes: Optional[Dict[str, str]]) -> FileResult:
        """convert_file() with expected failures turned into a FileResult."""
        try:
            return self.convert_file(relative_path, known_hashes)
        except (AtlasDecodeError, ImageEncodeError, OSError) as e:
            output = self.walker.output_path_for(self.output_root, relative_path)
            return FileResult(relative_path, output, STATUS_FAILED,
                              error=str(e), exception=e)

    # ==========================================================================
    # BATCH
    # ==========================================================================

    def scan(self) -> List[str]:
        """List source files relative to source_root."""
        return self.walker.list_data_files(self.source_root)

    def convert_all(self, progress_callback: Optional[ProgressCallback] = None,
                    status_callback: Optional[StatusCallback] = None) -> ConversionResult:
        """
        Convert every source file.

        Args:
            progress_callback: Optional callback(current, total, relative_path)
            status_callback:   Optional callback(message) for phase messages

        Returns:
            ConversionResult with details

        Raises:
            FileNotFoundError: source_root does not exist
        """
        start = time.perf_counter()
        result = ConversionResult(output_path=self.output_root)

        if not os.path.isdir(self.source_root):
            raise FileNotFoundError(f"path does not exist: {self.source_root}")

        self._status(status_callback, "Scanning files...")
        files = self.scan()
        result.total = len(files)

        self._status(status_callback, "Creating directories...")
        self.walker.ensure_parent_dirs(self.output_root, files)

        known_hashes = self._load_known_hashes()

        if self.workers > 1 and len(files) > 1:
            self._run_parallel(files, known_hashes, result,
                               progress_callback, status_callback)
        else:
            self._run_sequential(files, known_hashes, result,
                                 progress_callback, status_callback)

        result.elapsed = time.perf_counter() - start
        result.success = not result.failed

        if result.aborted:
            self._status(status_callback, f"Aborted: {result.errors[0]}")
        else:
            self._status(status_callback, f"Done in {result.elapsed:.2f}s.")

        logger.info(
            "Batch finished: %d converted, %d unchanged, %d skipped, %d failed "
            "of %d in %.2fs",
            result.converted, result.unchanged, result.skipped,
            len(result.failed), result.total, result.elapsed
        )
        return result

    def _run_sequential(self, files, known_hashes, result,
                        progress_callback, status_callback):
        total = len(files)
        for i, rel in enumerate(files):
            self._status(status_callback, f"Extracting file: {rel} ({i + 1}/{total})")
            abort = self._collect(result, self._process(rel, known_hashes))
            if progress_callback:
                progress_callback(i + 1, total, rel)
            if abort:
                break

    def _run_parallel(self, files, known_hashes, result,
                      progress_callback, status_callback):
        total = len(files)
        done = 0
        aborted = False
        queue = iter(files)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            # At most `workers` files are in flight, so an abort stops the
            # batch after the running files finish
            future_to_path = {
                executor.submit(self._process, rel, known_hashes): rel
                for rel in islice(queue, self.workers)
            }

            while future_to_path:
                finished, _ = wait(future_to_path, return_when=FIRST_COMPLETED)

                for future in finished:
                    rel = future_to_path.pop(future)
                    done += 1
                    self._status(status_callback, f"Extracting file: {rel} ({done}/{total})")
                    if self._collect(result, future.result()):
                        aborted = True
                    if progress_callback:
                        progress_callback(done, total, rel)

                if not aborted:
                    for rel in islice(queue, len(finished)):
                        future = executor.submit(self._process, rel, known_hashes)
                        future_to_path[future] = rel

    def _collect(self, result: ConversionResult, file_result: FileResult) -> bool:
        """Fold one FileResult into the batch result. Returns True to abort."""
        result.results.append(file_result)
        status = file_result.status

        if status == STATUS_CONVERTED:
            result.converted += 1
        elif status == STATUS_UNCHANGED:
            result.unchanged += 1
        elif status == STATUS_SKIPPED:
            result.skipped += 1
        else:
            result.failed.append(file_result.relative_path)
            result.errors.append(f"{file_result.relative_path}: {file_result.error}")
            logger.error("Failed to convert %s: %s",
                         file_result.relative_path, file_result.error)

        self._record(file_result)

        if status == STATUS_FAILED and self.error_policy == ERROR_POLICY_ABORT:
            result.aborted = True
            return True
        return False

    # ==========================================================================
    # HISTORY
    # ==========================================================================

    def _load_known_hashes(self) -> Dict[str, str]:
        if not (self.incremental and self.database):
            return {}
        records = self.database.get_all_records(status=STATUS_CONVERTED)
        known = {r.source_path: r.source_hash for r in records if r.source_hash}
        logger.info("Loaded %d previous conversions", len(known))
        return known

    def _record(self, file_result: FileResult):
        if self.database is None:
            return
        if file_result.status not in (STATUS_CONVERTED, STATUS_FAILED):
            return

        self.database.record_conversion(
            source_path=os.path.join(self.source_root, file_result.relative_path),
            output_path=file_result.output_path,
            source_hash=file_result.source_hash,
            width=file_result.width,
            height=file_result.height,
            has_alpha=file_result.has_alpha,
            status=file_result.status,
            error=file_result.error,
        )

    @staticmethod
    def _status(status_callback: Optional[StatusCallback], message: str):
        logger.debug(message)
        if status_callback:
            status_callback(message)
