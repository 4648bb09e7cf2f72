"""
Simple runner - just run: python run_scraper.py

Usage:
    python run_scraper.py                  # Players from yesterday's games (default)
    python run_scraper.py extract          # Same, resuming from the status file
    python run_scraper.py retry-failed     # Retry failed players
    python run_scraper.py search --years 2000-2006
    python run_scraper.py upload           # Upload after a successful extraction
    python run_scraper.py extract --no-resume  # Start fresh
"""
import sys

from player_scraper.main import main


if __name__ == '__main__':
    argv = sys.argv[1:] or ['extract']
    print(f"Starting player scraper ({argv[0]})...")
    print("Press Ctrl+C to stop (progress is saved automatically)\n")
    try:
        sys.exit(main(argv))
    except KeyboardInterrupt:
        print("\nStopped. Run again to resume.")
        sys.exit(0)
