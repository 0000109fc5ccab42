"""Supreme Court Database release resolution.

SCDB publishes numbered releases (e.g. 2024_01) under one directory per
release, each with a justice-centered, citation-level CSV archive:

  http://scdb.wustl.edu/_brickFiles/2024_01/SCDB_2024_01_justiceCentered_Citation.csv.zip

This module encapsulates the naming so the fetcher can target any release.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from court_votes.config import SCDB_BASE_URL

# Update this when the SCDB publishes a new release.
CURRENT_RELEASE = "2024_01"

KNOWN_RELEASES = ["2024_01", "2023_01", "2022_01", "2021_01", "2020_01"]

_RELEASE_RE = re.compile(r"^(\d{4})[_-](\d{1,2})$")


@dataclass(frozen=True)
class SCDBRelease:
    """A Supreme Court Database release and its file naming patterns."""

    year: int
    version: int = 1

    @property
    def code(self) -> str:
        """e.g., '2024_01'"""
        return f"{self.year}_{self.version:02d}"

    @property
    def stem(self) -> str:
        """e.g., 'SCDB_2024_01_justiceCentered_Citation'"""
        return f"SCDB_{self.code}_justiceCentered_Citation"

    @property
    def csv_name(self) -> str:
        return f"{self.stem}.csv"

    @property
    def zip_name(self) -> str:
        return f"{self.stem}.csv.zip"

    @property
    def url(self) -> str:
        return f"{SCDB_BASE_URL}/{self.code}/{self.zip_name}"

    @property
    def is_current(self) -> bool:
        return self.code == CURRENT_RELEASE

    @property
    def label(self) -> str:
        """Human-readable label, e.g., 'SCDB 2024 Release 01'"""
        return f"SCDB {self.year} Release {self.version:02d}"

    @property
    def output_name(self) -> str:
        """Filesystem-safe name for output dirs, e.g., 'scdb_2024_01'"""
        return f"scdb_{self.code}"

    @property
    def data_dir(self) -> Path:
        return Path("data") / self.output_name

    @property
    def csv_path(self) -> Path:
        return self.data_dir / self.csv_name

    @classmethod
    def from_string(cls, release: str) -> "SCDBRelease":
        """Create a release from a CLI-style string like '2024_01', '2024-01' or '2024-1'."""
        m = _RELEASE_RE.match(release.strip())
        if not m:
            raise ValueError(f"Unrecognized SCDB release: {release!r} (expected YYYY_NN)")
        return cls(year=int(m.group(1)), version=int(m.group(2)))
