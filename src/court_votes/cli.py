"""Command-line interface for fetching Supreme Court Database releases."""

import argparse
from pathlib import Path

from court_votes.fetch import SCDBFetcher
from court_votes.release import CURRENT_RELEASE, KNOWN_RELEASES, SCDBRelease


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="court-votes",
        description="Download a Supreme Court Database justice-centered release.",
    )
    parser.add_argument(
        "release",
        nargs="?",
        default=CURRENT_RELEASE,
        help=f"SCDB release, e.g. 2024_01, 2023_01 (default: {CURRENT_RELEASE})",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output directory (default: data/scdb_{release}/)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-download even if the archive is cached",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete cached archive and CSV before running",
    )
    parser.add_argument(
        "--list-releases",
        action="store_true",
        help="List known SCDB releases and exit",
    )

    args = parser.parse_args(argv)

    if args.list_releases:
        print("Known Supreme Court Database releases:")
        print()
        for code in KNOWN_RELEASES:
            r = SCDBRelease.from_string(code)
            marker = "  (current)" if r.is_current else ""
            print(f"    {r.label:24s}  {r.url}{marker}")
        return

    try:
        release = SCDBRelease.from_string(args.release)
    except ValueError as e:
        parser.error(str(e))

    fetcher = SCDBFetcher(release=release, output_dir=args.output)

    if args.clear_cache:
        fetcher.clear_cache()

    fetcher.run(force=args.force)
