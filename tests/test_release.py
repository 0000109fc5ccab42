"""
Tests for SCDB release resolution in release.py.

Verifies release parsing, file naming, URLs, and the derived data paths.

Run: uv run pytest tests/test_release.py -v
"""

from pathlib import Path

import pytest

from court_votes.release import CURRENT_RELEASE, KNOWN_RELEASES, SCDBRelease


class TestFromString:
    """SCDBRelease.from_string() accepts YYYY_NN and close variants."""

    @pytest.mark.parametrize("text", ["2024_01", "2024-01", "2024-1", " 2024_01 "])
    def test_accepted_forms(self, text):
        assert SCDBRelease.from_string(text) == SCDBRelease(2024, 1)

    @pytest.mark.parametrize("text", ["2024", "24_01", "latest", "2024_001", ""])
    def test_rejected_forms(self, text):
        with pytest.raises(ValueError, match="Unrecognized SCDB release"):
            SCDBRelease.from_string(text)

    def test_known_releases_parse(self):
        for code in KNOWN_RELEASES:
            assert SCDBRelease.from_string(code).code == code


class TestNaming:
    """File names, URL and output locations."""

    def test_code_zero_padded(self):
        assert SCDBRelease(2022, 1).code == "2022_01"

    def test_file_names(self):
        r = SCDBRelease(2024, 1)
        assert r.csv_name == "SCDB_2024_01_justiceCentered_Citation.csv"
        assert r.zip_name == "SCDB_2024_01_justiceCentered_Citation.csv.zip"

    def test_url(self):
        r = SCDBRelease(2023, 1)
        assert r.url == (
            "http://scdb.wustl.edu/_brickFiles/2023_01/SCDB_2023_01_justiceCentered_Citation.csv.zip"
        )

    def test_label(self):
        assert SCDBRelease(2024, 1).label == "SCDB 2024 Release 01"

    def test_paths(self):
        r = SCDBRelease(2024, 1)
        assert r.output_name == "scdb_2024_01"
        assert r.data_dir == Path("data") / "scdb_2024_01"
        assert r.csv_path == Path("data") / "scdb_2024_01" / r.csv_name

    def test_is_current(self):
        assert SCDBRelease.from_string(CURRENT_RELEASE).is_current
        assert not SCDBRelease(1999, 1).is_current
