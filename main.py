# ==============================================================================
# ATLAS EXTRACTOR - MAIN ENTRY POINT
# ==============================================================================
# Development launcher. Runs the CLI straight from a source checkout without
# installing the package.
#
# Usage:
#   python main.py convert atlas/      # Same as `atlas-extractor convert atlas/`
#   python main.py --version           # Show version
#   python main.py --paths             # Show data paths
#   python main.py --check             # Check dependencies
# ==============================================================================

import sys

# Third-party packages the converter cannot run without
CORE_DEPENDENCIES = [
    ('PIL', 'Pillow'),
    ('numpy', 'numpy'),
    ('sqlalchemy', 'SQLAlchemy'),
]


# ==============================================================================
# DEPENDENCY CHECKS
# ==============================================================================

def check_dependencies():
    """
    Check if required dependencies are installed.

    Returns:
        Tuple of (all_ok, missing_packages)
    """
    missing = []

    for module, package in CORE_DEPENDENCIES:
        try:
            __import__(module)
        except ImportError:
            missing.append(package)

    return (len(missing) == 0, missing)


# ==============================================================================
# LAUNCHER OPTIONS
# ==============================================================================

def show_version() -> int:
    from atlas_extractor import __description__, __version__

    print(f"Atlas Extractor v{__version__}")
    print(__description__)
    return 0


def show_paths() -> int:
    from atlas_extractor.core.config import Config
    from atlas_extractor.core.paths import Paths

    config = Config()
    config.load()

    print("Atlas Extractor Paths:")
    print(f"  App Path:       {Paths.get_app_dir()}")
    print(f"  User Data:      {Paths.get_user_data_dir()}")
    print(f"  Config:         {config.config_path}")
    print(f"  Database:       {config.database_path}")
    print(f"  Logs:           {Paths.get_logs_dir()}")
    print(f"  Output:         {config.output_path}")
    return 0


def run_check() -> int:
    print("Checking dependencies...")
    print(f"  Python: {sys.version}")

    all_ok, missing = check_dependencies()

    if all_ok:
        print("[OK] All core dependencies installed")
    else:
        print(f"[MISSING] {', '.join(missing)}")
        print(f"Install with: pip install {' '.join(missing)}")

    return 0 if all_ok else 1


# ==============================================================================
# MAIN FUNCTION
# ==============================================================================

def main(argv=None) -> int:
    """Handle launcher-only options, otherwise hand over to the CLI."""
    argv = sys.argv[1:] if argv is None else argv

    if argv == ['--check']:
        return run_check()

    all_ok, missing = check_dependencies()
    if not all_ok:
        print(f"[ERROR] Missing required packages: {', '.join(missing)}")
        return 1

    if argv == ['--version']:
        return show_version()
    if argv == ['--paths']:
        return show_paths()

    from atlas_extractor.cli import main as cli_main
    return cli_main(argv)


# ==============================================================================
# SCRIPT ENTRY POINT
# ==============================================================================
if __name__ == "__main__":
    sys.exit(main())
