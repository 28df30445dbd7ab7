# ==============================================================================
# ATLAS EXTRACTOR - COMMAND LINE INTERFACE
# ==============================================================================
# Command-line front end for converting .data atlases.
#
# This provides a command-line interface with the following commands:
#   - convert: Convert every .data file under a folder to PNG
#   - info:    Show header and run statistics of one .data file
#   - pack:    Encode an image (PNG, etc.) as a .data atlas
#   - history: Inspect or clear the conversion history
#   - config:  Show or change settings
#
# Usage:
#   atlas-extractor convert "E:/game/atlas" --output result
#   atlas-extractor convert atlas/ --workers 4 --skip-errors
#   atlas-extractor info atlas/ui/main.data
#   atlas-extractor pack edited.png atlas/ui/main.data
#   atlas-extractor history list --status failed
#   atlas-extractor config set worker_threads 4
# ==============================================================================

import argparse
import logging
import logging.handlers
import os
import sys
from typing import List, Optional

from . import __version__
from .core.config import DEFAULT_CONFIG, Config
from .core.database import Database
from .core.paths import Paths
from .parsers.atlas_parser import AtlasDecoder, iter_runs
from .parsers.atlas_writer import AtlasWriter
from .parsers.batch_converter import BatchConverter
from .parsers.errors import AtlasDecodeError, AtlasEncodeError

logger = logging.getLogger(__name__)

LOG_FILE_NAME = 'atlas_extractor.log'

# Handlers installed by configure_logging(), replaced on reconfiguration
_log_handlers: List[logging.Handler] = []


# ==============================================================================
# COLOR HELPERS FOR TERMINAL OUTPUT
# ==============================================================================
class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'

    @classmethod
    def disable(cls):
        """Disable colors (for non-supporting terminals and pipes)."""
        cls.HEADER = ''
        cls.BLUE = ''
        cls.CYAN = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.RED = ''
        cls.BOLD = ''
        cls.END = ''


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}\n")


def print_success(text: str):
    print(f"{Colors.GREEN}✓ {text}{Colors.END}")


def print_error(text: str):
    print(f"{Colors.RED}✗ {text}{Colors.END}")


def print_info(text: str):
    print(f"{Colors.BLUE}ℹ {text}{Colors.END}")


def print_warning(text: str):
    print(f"{Colors.YELLOW}⚠ {text}{Colors.END}")


def progress_callback(current: int, total: int, filename: str):
    """Progress bar for batch conversion."""
    percent = (current / total) * 100 if total > 0 else 0
    bar_length = 30
    filled = int(bar_length * current / total) if total > 0 else 0
    bar = '█' * filled + '░' * (bar_length - filled)

    max_name_len = 40
    if len(filename) > max_name_len:
        filename = '...' + filename[-(max_name_len - 3):]

    print(f"\r[{bar}] {percent:5.1f}% | {current}/{total} | {filename:<{max_name_len}}",
          end='', flush=True)

    if current >= total:
        print()


# ==============================================================================
# LOGGING
# ==============================================================================
def configure_logging(verbose: bool = False, log_to_file: bool = True):
    """
    Set up logging for a CLI run.

    The console only shows warnings unless verbose, so log lines do not
    break the progress bar. The log file in the user data folder always
    receives INFO (DEBUG when verbose).
    """
    reset_logging()

    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.INFO
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    _log_handlers.append(console)

    if log_to_file:
        log_path = os.path.join(Paths.get_logs_dir(), LOG_FILE_NAME)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=1024 * 1024, backupCount=3, encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
        ))
        _log_handlers.append(file_handler)

    for handler in _log_handlers:
        root.addHandler(handler)


def reset_logging():
    """Remove and close the handlers installed by configure_logging()."""
    root = logging.getLogger()
    for handler in _log_handlers:
        root.removeHandler(handler)
        handler.close()
    _log_handlers.clear()


# ==============================================================================
# HELPERS
# ==============================================================================
def open_history(config: Config) -> Database:
    """Open the conversion history database configured in `config`."""
    return Database(config.database_path)


# ==============================================================================
# CONVERT COMMAND
# ==============================================================================
def cmd_convert(args, config: Config) -> int:
    """Convert every .data file under a folder."""
    print_header("Converting Atlas Files")

    try:
        if args.output:
            config.output_path = args.output
        if args.workers is not None:
            config.worker_threads = args.workers
        if args.skip_errors:
            config.error_policy = 'skip'
        if args.incremental:
            config.incremental = True
        if args.no_overwrite:
            config.overwrite_existing = False
        if args.max_pixels is not None:
            config.max_image_pixels = args.max_pixels
    except ValueError as e:
        print_error(f"Invalid option: {e}")
        return 1

    database = None
    if config.track_history and not args.no_history:
        database = open_history(config)
    elif config.incremental:
        print_warning("Incremental mode needs the history database, converting everything")

    print_info(f"Source: {os.path.abspath(args.source)}")
    print_info(f"Output: {config.output_path}")
    if config.worker_threads > 1:
        print_info(f"Workers: {config.worker_threads}")
    print()

    try:
        converter = BatchConverter.from_config(config, args.source, database=database)
        result = converter.convert_all(progress_callback=progress_callback)
    except FileNotFoundError as e:
        print_error(str(e))
        return 1
    finally:
        if database is not None:
            database.close()

    print()
    if result.total == 0:
        print_warning(f"No {config.source_extension} files found")

    print(f"{Colors.BOLD}Results:{Colors.END}")
    print(f"  {Colors.GREEN}Converted:{Colors.END} {result.converted}")
    if result.unchanged:
        print(f"  {Colors.CYAN}Unchanged:{Colors.END} {result.unchanged}")
    if result.skipped:
        print(f"  {Colors.YELLOW}Skipped:{Colors.END}   {result.skipped}")
    if result.failed:
        print(f"  {Colors.RED}Failed:{Colors.END}    {len(result.failed)}")
    print()

    for error in result.errors:
        print_error(error)

    if result.aborted:
        remaining = result.total - result.processed
        print_error(f"Aborted after first error ({remaining} files not processed)")
        return 1

    if result.failed:
        print_warning(f"Done in {result.elapsed:.2f}s with {len(result.failed)} failures.")
        return 1

    print_success(f"Done in {result.elapsed:.2f}s.")
    return 0


# ==============================================================================
# INFO COMMAND
# ==============================================================================
def cmd_info(args, config: Config) -> int:
    """Show header and run statistics of a .data file."""
    print_header("Atlas Info")

    try:
        with open(args.file, 'rb') as f:
            data = f.read()
    except OSError as e:
        print_error(f"Cannot read {args.file}: {e}")
        return 1

    try:
        header = AtlasDecoder(config.max_image_pixels or None).read_header(data)
    except AtlasDecodeError as e:
        print_error(str(e))
        return 1

    print(f"File:       {args.file}")
    print(f"File size:  {len(data)} bytes")
    print(f"Size:       {header.width}x{header.height} = {header.pixel_count} pixels")
    print(f"Flags:      {header.flags:#04x} ({'RGBA' if header.has_alpha else 'RGB'})")

    runs = 0
    transparent = 0
    total = 0
    longest = 0
    try:
        for run in iter_runs(data):
            runs += 1
            total += run.count
            longest = max(longest, run.count)
            if run.is_transparent:
                transparent += 1
    except AtlasDecodeError as e:
        print(f"Runs:       {runs} read before error")
        print_error(str(e))
        return 1

    print(f"Runs:       {runs} ({transparent} transparent, longest {longest})")
    print(f"Run total:  {total} pixels")

    if total != header.pixel_count:
        print_error(f"size does not match: {header.pixel_count} != {total}")
        return 1

    if config.max_image_pixels and header.pixel_count > config.max_image_pixels:
        print_warning(f"Exceeds max_image_pixels ({config.max_image_pixels}), "
                      f"convert will refuse it")

    print_success("Valid atlas")
    return 0


# ==============================================================================
# PACK COMMAND
# ==============================================================================
def cmd_pack(args, config: Config) -> int:
    """Encode an image as a .data atlas."""
    from PIL import Image

    print_header("Packing Atlas")

    try:
        with Image.open(args.image) as image:
            written = AtlasWriter(has_alpha=args.alpha).save(image, args.output)
            size = image.size
    except (OSError, AtlasEncodeError) as e:
        print_error(f"Pack failed: {e}")
        return 1

    print_info(f"Image:  {args.image} ({size[0]}x{size[1]})")
    print_success(f"Wrote {args.output} ({written} bytes)")
    return 0


# ==============================================================================
# HISTORY COMMANDS
# ==============================================================================
def cmd_history_list(args, config: Config) -> int:
    """List recent conversions."""
    print_header("Conversion History")

    db = open_history(config)
    try:
        records = db.get_all_records(status=args.status, limit=args.limit)
    finally:
        db.close()

    if not records:
        print_warning("No conversions recorded")
        return 0

    print(f"{'Status':<10} {'Size':<12} {'When':<20} Source")
    print("-" * 80)
    for record in records:
        size = f"{record.width}x{record.height}" if record.width is not None else "-"
        when = record.converted_at.strftime('%Y-%m-%d %H:%M:%S') if record.converted_at else ""
        print(f"{record.status:<10} {size:<12} {when:<20} {record.source_path}")
        if record.error:
            print(f"{'':<10} {Colors.RED}{record.error}{Colors.END}")

    print(f"\nShown: {len(records)}")
    return 0


def cmd_history_stats(args, config: Config) -> int:
    """Show history statistics."""
    print_header("History Statistics")

    db = open_history(config)
    try:
        stats = db.get_stats()
    finally:
        db.close()

    print(f"Database:   {config.database_path}")
    print(f"Files:      {stats['total']}")
    print(f"Converted:  {stats['converted']}")
    print(f"Failed:     {stats['failed']}")
    return 0


def cmd_history_clear(args, config: Config) -> int:
    """Delete all history records."""
    db = open_history(config)
    try:
        count = db.clear_history()
    finally:
        db.close()

    print_success(f"Removed {count} history records")
    return 0


# ==============================================================================
# CONFIG COMMANDS
# ==============================================================================
def cmd_config_show(args, config: Config) -> int:
    """Print all settings."""
    print_header("Configuration")
    print(f"File: {config.config_path}\n")
    for key in sorted(DEFAULT_CONFIG):
        print(f"  {key:<22} {config.get(key)!r}")
    return 0


def cmd_config_set(args, config: Config) -> int:
    """Change one setting and save."""
    try:
        config.set_from_string(args.key, args.value)
    except (KeyError, TypeError, ValueError) as e:
        print_error(str(e).strip("'\""))
        return 1

    config.save()
    print_success(f"{args.key} = {config.get(args.key)!r}")
    return 0


def cmd_config_reset(args, config: Config) -> int:
    """Restore default settings."""
    config.reset_to_defaults()
    config.save()
    print_success("Configuration reset to defaults")
    return 0


# ==============================================================================
# MAIN ARGUMENT PARSER
# ==============================================================================
def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='atlas-extractor',
        description="Atlas Extractor - convert run-length encoded .data atlases to PNG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s convert atlas/                  Convert into ./result
  %(prog)s convert atlas/ -o out -w 4      Four worker threads
  %(prog)s info atlas/ui/main.data         Inspect one file
  %(prog)s pack edited.png main.data       Encode an image
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--config', help='Path to config.json')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # -------------------------------------------------------------------------
    # CONVERT command
    # -------------------------------------------------------------------------
    convert = subparsers.add_parser('convert', help='Convert .data files to PNG')
    convert.add_argument('source', help='Folder containing .data files')
    convert.add_argument('--output', '-o', help='Output folder (default: ./result)')
    convert.add_argument('--workers', '-w', type=int, help='Parallel worker threads')
    convert.add_argument('--skip-errors', action='store_true',
                         help='Continue after a failed file instead of aborting')
    convert.add_argument('--incremental', action='store_true',
                         help='Skip files unchanged since their last conversion')
    convert.add_argument('--no-overwrite', action='store_true',
                         help='Keep existing output files')
    convert.add_argument('--max-pixels', type=int,
                         help='Refuse images larger than this many pixels (0 = no limit)')
    convert.add_argument('--no-history', action='store_true',
                         help='Do not record conversions in the history database')
    convert.set_defaults(func=cmd_convert)

    # -------------------------------------------------------------------------
    # INFO command
    # -------------------------------------------------------------------------
    info = subparsers.add_parser('info', help='Inspect a .data file')
    info.add_argument('file', help='.data file')
    info.set_defaults(func=cmd_info)

    # -------------------------------------------------------------------------
    # PACK command
    # -------------------------------------------------------------------------
    pack = subparsers.add_parser('pack', help='Encode an image as .data')
    pack.add_argument('image', help='Input image (any format Pillow reads)')
    pack.add_argument('output', help='Output .data file')
    alpha = pack.add_mutually_exclusive_group()
    alpha.add_argument('--alpha', dest='alpha', action='store_true', default=None,
                       help='Always write alpha runs')
    alpha.add_argument('--no-alpha', dest='alpha', action='store_false',
                       help='Write opaque runs (fails on translucent pixels)')
    pack.set_defaults(func=cmd_pack)

    # -------------------------------------------------------------------------
    # HISTORY commands
    # -------------------------------------------------------------------------
    history = subparsers.add_parser('history', help='Conversion history')
    history_sub = history.add_subparsers(dest='subcommand')

    history_list = history_sub.add_parser('list', help='List recent conversions')
    history_list.add_argument('--status', choices=['converted', 'failed'])
    history_list.add_argument('--limit', type=int, default=50, help='Max records to show')
    history_list.set_defaults(func=cmd_history_list)

    history_stats = history_sub.add_parser('stats', help='Show history statistics')
    history_stats.set_defaults(func=cmd_history_stats)

    history_clear = history_sub.add_parser('clear', help='Delete all history')
    history_clear.set_defaults(func=cmd_history_clear)

    # -------------------------------------------------------------------------
    # CONFIG commands
    # -------------------------------------------------------------------------
    config_parser = subparsers.add_parser('config', help='Show or change settings')
    config_sub = config_parser.add_subparsers(dest='subcommand')

    config_show = config_sub.add_parser('show', help='Print all settings')
    config_show.set_defaults(func=cmd_config_show)

    config_set = config_sub.add_parser('set', help='Change a setting')
    config_set.add_argument('key', help='Setting name')
    config_set.add_argument('value', help='New value')
    config_set.set_defaults(func=cmd_config_set)

    config_reset = config_sub.add_parser('reset', help='Restore defaults')
    config_reset.set_defaults(func=cmd_config_reset)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()
    elif sys.platform == 'win32':
        # Enable ANSI colors on Windows consoles
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
        except (AttributeError, OSError):
            Colors.disable()

    config = Config(args.config)
    config.load()
    configure_logging(args.verbose or config.debug_mode)

    if not args.command:
        parser.print_help()
        return 0

    if not hasattr(args, 'func'):
        # Command group without a subcommand
        parser.parse_args([args.command, '--help'])
        return 0

    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
