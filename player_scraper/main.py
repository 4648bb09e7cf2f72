"""
Main entry point for the Swedish player extractor, search sweep and uploader.
"""

import argparse
import atexit
import signal
import sys
from pathlib import Path
from typing import List, Optional, Union

from dotenv import load_dotenv

from .batch_uploader import BatchUploader, load_records
from .config import ScraperConfig
from .errors import ConfigurationError
from .extractor import ExtractionController
from .resilience.run_lock import RunLock
from .resilience.status_store import StatusStore
from .search_scraper import SearchScraper


# Global controller and lock for signal handling
_controller: Optional[Union[ExtractionController, SearchScraper]] = None
_lock: Optional[RunLock] = None


def load_environment(env_path: Optional[Path] = None):
    """Load .env beside the working directory, falling back to the system environment."""
    env_path = env_path or Path.cwd() / '.env'
    if not env_path.exists():
        print(f"⚠️  Warning: .env file not found at {env_path}")
        print("Using environment variables from system")
    else:
        load_dotenv(env_path)
        print("✓ Loaded environment from .env")


def signal_handler(signum, frame):
    """Handle SIGINT/SIGTERM for graceful shutdown."""
    print("\n\n" + "=" * 60)
    print("STOP SIGNAL RECEIVED - SHUTTING DOWN GRACEFULLY")
    print("=" * 60)
    if _controller:
        _controller.stop()
        print("Waiting for current operation to complete...")
        return
    if _lock:
        _lock.release()
    print("Exiting immediately...")
    sys.exit(1)


def install_signal_handlers():
    signal.signal(signal.SIGINT, signal_handler)
    # SIGTERM is not reliably available on Windows
    if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
        signal.signal(signal.SIGTERM, signal_handler)


def parse_years(value: str):
    """'2004' or '1992-2006' -> (from, to)."""
    try:
        if '-' in value:
            start, end = value.split('-', 1)
            years = int(start), int(end)
        else:
            years = int(value), int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid year range: {value}")
    if years[0] > years[1]:
        raise argparse.ArgumentTypeError(f"year range is reversed: {value}")
    return years


def build_config(args) -> ScraperConfig:
    config = ScraperConfig.from_env()
    if getattr(args, 'workers', None):
        config.workers = args.workers
    if getattr(args, 'max_pages', None):
        config.max_pages = args.max_pages
    if getattr(args, 'positions', None):
        config.positions = [p.strip().lower() for p in args.positions.split(',') if p.strip()]
    if getattr(args, 'years', None):
        config.year_from, config.year_to = args.years
    if getattr(args, 'batch_size', None):
        config.upload.batch_size = args.batch_size
    return config


def run_extraction(args, config: ScraperConfig) -> int:
    """Run the games walk (or just the failure retry) with ExtractionController."""
    global _controller

    _controller = ExtractionController(config)
    atexit.register(_controller.status.flush)
    install_signal_handlers()

    result = _controller.run(mode=args.command, resume=not args.no_resume)

    print("\n" + "=" * 60)
    print("EXTRACTION COMPLETE")
    print("=" * 60)
    print(f"Mode:        {result.mode}")
    print(f"Success:     {result.success}")
    print(f"Duration:    {result.duration_seconds / 60:.1f} minutes")
    print(f"Pages:       {result.pages_walked}")
    print(f"Teams:       {result.containers_visited}")
    print(f"Discovered:  {result.total_discovered}")
    print(f"Completed:   {result.total_completed}")
    print(f"Skipped:     {result.total_skipped}")
    print(f"Failed:      {result.total_failed}")

    if result.failed_records:
        print(f"\nFailed players ({len(result.failed_records)}):")
        for f in result.failed_records[:10]:
            print(f"  - {f['id']}: {f['reason'][:50]}")
        if len(result.failed_records) > 10:
            print(f"  ... and {len(result.failed_records) - 10} more")

    return 0 if result.success else 1


def run_search(args, config: ScraperConfig) -> int:
    global _controller

    _controller = SearchScraper(config)
    install_signal_handlers()
    return 0 if _controller.run() else 1


def run_upload(args, config: ScraperConfig) -> int:
    """Upload the players document, guarded by the success marker and the run lock."""
    global _lock

    paths = config.paths
    if not args.force and not paths.extraction_marker.exists():
        print("✗ Extraction did not complete successfully. Skipping API upload.")
        print(f"  Expected marker: {paths.extraction_marker} (use --force to upload anyway)")
        return 1

    _lock = RunLock(paths.uploader_lock, paths.uploader_pid)
    _lock.acquire()
    install_signal_handlers()

    try:
        records = load_records(paths.players_data_json, config.upload.collection_key)
        print(f"✓ Loaded {len(records)} players from {paths.players_data_json}")
        uploader = BatchUploader(config.upload, failed_file=paths.failed_uploads_file)
        result = uploader.upload(records, batch_size=config.upload.batch_size)
    finally:
        _lock.release()

    return 0 if result.success else 1


def run_reset(args, config: ScraperConfig) -> int:
    StatusStore(config.paths.status_file).reset()
    print("✓ Extraction status cleared")
    return 0


HANDLERS = {
    'extract': run_extraction,
    'retry-failed': run_extraction,
    'search': run_search,
    'upload': run_upload,
    'reset': run_reset,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='player-scraper',
        description='EliteProspects Swedish player extractor and uploader',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Players from yesterday's games (resumable)
  player-scraper extract

  # Retry previously failed players only
  player-scraper retry-failed

  # Search sweep over positions and birth years
  player-scraper search --positions f,d --years 2000-2006

  # Upload the extracted players in windows of 50
  player-scraper upload --batch-size 50
"""
    )
    sub = parser.add_subparsers(dest='command', required=True)

    for name, help_text in (('extract', 'Walk yesterday\'s games and fetch Swedish players'),
                            ('retry-failed', 'Refetch the players in the failure queue')):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('--workers', type=int, help='Concurrent profile fetches (default: 8)')
        p.add_argument('--max-pages', type=int, help='Games listing page cap (default: 20)')
        p.add_argument('--no-resume', action='store_true',
                       help='Start fresh instead of resuming from saved state')

    p = sub.add_parser('search', help='Sweep the player search by position and birth year')
    p.add_argument('--workers', type=int, help='Concurrent profile fetches (default: 8)')
    p.add_argument('--positions', type=str, help='Comma-separated positions (default: f)')
    p.add_argument('--years', type=parse_years, help='Birth year or range, e.g. 1992-2006')

    p = sub.add_parser('upload', help='Upload extracted players to the API')
    p.add_argument('--batch-size', type=int, help='Players per request (default: 50)')
    p.add_argument('--force', action='store_true',
                   help='Upload even if the last extraction did not finish')

    sub.add_parser('reset', help='Delete the extraction status document')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_environment()

    try:
        config = build_config(args)
        return HANDLERS[args.command](args, config)
    except ConfigurationError as e:
        print(f"✗ {e}")
        return 1
    except MemoryError:
        print("✗ Out of memory")
        return 137


if __name__ == '__main__':
    sys.exit(main())
