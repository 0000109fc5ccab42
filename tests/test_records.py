"""
Tests for vote record loading and the VoteRecordStore in records.py.

Covers SCDB column mapping, missing-data encodings resolved at ingestion
(direction 3, blank votes, majority codes), row rejection, duplicate handling,
period derivation from a decision date, and the store's filtering helpers.

Run: uv run pytest tests/test_records.py -v
"""

import polars as pl
import pytest

from court_votes.errors import InvalidParameterError, SchemaError
from court_votes.models import RECORD_SCHEMA, VoteRecord
from court_votes.records import VoteRecordStore, load_votes

# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def scdb_frame() -> pl.DataFrame:
    """SCDB-style justice-centered rows: 2 cases, 3 justices.

    Case 2000-001: all three vote with the majority (unanimous).
    Case 2001-001: justice 3 dissents; justice 2 has no recorded vote.
    Justice 1's direction in 2001 is 3 (unspecifiable).
    """
    return pl.DataFrame(
        {
            "caseId": ["2000-001", "2000-001", "2000-001", "2001-001", "2001-001", "2001-001"],
            "term": [2000, 2000, 2000, 2001, 2001, 2001],
            "justice": [1, 2, 3, 1, 2, 3],
            "justiceName": ["AAlpha", "BBeta", "CGamma", "AAlpha", "BBeta", "CGamma"],
            "vote": [1, 1, 1, 1, None, 2],
            "direction": [1, 1, 1, 3, None, 2],
            "majority": [2, 2, 2, 2, None, 1],
            "majVotes": [3, 3, 3, 1, 1, 1],
            "minVotes": [0, 0, 0, 1, 1, 1],
        }
    )


def _canonical(rows: list[dict]) -> pl.DataFrame:
    schema = {"case_id": pl.Utf8, "period": pl.Int64, "voter_id": pl.Utf8, "vote_code": pl.Utf8}
    return pl.DataFrame(rows, schema=schema)


# ── SCDB mapping ─────────────────────────────────────────────────────────────


class TestLoadScdb:
    """load_votes() maps SCDB column names onto the canonical schema."""

    def test_canonical_columns(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.frame.columns == list(RECORD_SCHEMA)

    def test_voter_id_is_string(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.frame["voter_id"].dtype == pl.Utf8
        assert store.voters() == ["1", "2", "3"]

    def test_vote_code_string_without_float_artifacts(self):
        df = pl.DataFrame(
            {
                "case_id": ["c1", "c1"],
                "period": [2000, 2000],
                "voter_id": ["a", "b"],
                "vote_code": [1.0, 3.0],
            }
        )
        store = load_votes(df, column_map={}, verbose=False)
        assert store.frame["vote_code"].to_list() == ["1", "3"]

    def test_missing_vote_is_null(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        row = store.frame.filter((pl.col("case_id") == "2001-001") & (pl.col("voter_id") == "2"))
        assert row["vote_code"][0] is None

    def test_unspecifiable_direction_is_null(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        row = store.frame.filter((pl.col("case_id") == "2001-001") & (pl.col("voter_id") == "1"))
        assert row["direction"][0] is None

    def test_valid_directions_kept(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        row = store.frame.filter((pl.col("case_id") == "2001-001") & (pl.col("voter_id") == "3"))
        assert row["direction"][0] == 2.0

    def test_majority_codes_mapped(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        case = store.frame.filter(pl.col("case_id") == "2001-001").sort("voter_id")
        assert case["is_majority"].to_list() == [True, None, False]

    def test_tallies_carried(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.frame["maj_votes"].dtype == pl.Int64
        assert store.frame.filter(pl.col("case_id") == "2000-001")["min_votes"].to_list() == [0, 0, 0]

    def test_names_mapping(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.names() == {"1": "AAlpha", "2": "BBeta", "3": "CGamma"}

    def test_sorted_by_period_case_voter(self, scdb_frame):
        store = load_votes(scdb_frame.reverse(), verbose=False)
        keys = store.frame.select("period", "case_id", "voter_id").rows()
        assert keys == sorted(keys)

    def test_reads_csv(self, scdb_frame, tmp_path):
        path = tmp_path / "votes.csv"
        scdb_frame.write_csv(path)
        store = load_votes(path, verbose=False)
        assert store.height == 6
        assert store.periods() == [2000, 2001]

    def test_reads_parquet(self, scdb_frame, tmp_path):
        path = tmp_path / "votes.parquet"
        scdb_frame.write_parquet(path)
        store = load_votes(path, verbose=False)
        assert store.height == 6


# ── Optional columns ─────────────────────────────────────────────────────────


class TestOptionalColumns:
    """Absent optional columns are added as typed nulls."""

    def test_minimal_columns(self):
        df = _canonical([{"case_id": "c1", "period": 2000, "voter_id": "a", "vote_code": "1"}])
        store = load_votes(df, column_map={}, verbose=False)
        row = store.frame.row(0, named=True)
        assert row["voter_name"] == "a"
        assert row["direction"] is None
        assert row["is_majority"] is None
        assert row["maj_votes"] is None
        assert store.frame.schema["direction"] == pl.Float64
        assert store.frame.schema["is_majority"] == pl.Boolean

    def test_period_from_date_column(self):
        df = pl.DataFrame(
            {
                "case_id": ["c1", "c2"],
                "decided": ["06/15/2000", "01/03/2001"],
                "voter_id": ["a", "a"],
                "vote_code": ["1", "1"],
            }
        )
        store = load_votes(df, column_map={}, date_column="decided", verbose=False)
        assert store.periods() == [2000, 2001]

    def test_missing_date_column_raises(self):
        df = pl.DataFrame({"case_id": ["c1"], "voter_id": ["a"], "vote_code": ["1"]})
        with pytest.raises(SchemaError, match="decided"):
            load_votes(df, column_map={}, date_column="decided", verbose=False)


# ── Validation ───────────────────────────────────────────────────────────────


class TestValidation:
    """Schema violations are fatal with a descriptive message."""

    def test_missing_required_column(self):
        df = pl.DataFrame({"case_id": ["c1"], "period": [2000], "voter_id": ["a"]})
        with pytest.raises(SchemaError, match="vote_code"):
            load_votes(df, column_map={}, verbose=False)

    def test_non_integer_period(self):
        df = pl.DataFrame(
            {"case_id": ["c1"], "period": ["spring"], "voter_id": ["a"], "vote_code": ["1"]}
        )
        with pytest.raises(SchemaError, match="period"):
            load_votes(df, column_map={}, verbose=False)

    def test_rows_without_identity_rejected(self):
        df = _canonical(
            [
                {"case_id": "c1", "period": 2000, "voter_id": "a", "vote_code": "1"},
                {"case_id": None, "period": 2000, "voter_id": "b", "vote_code": "1"},
                {"case_id": "c1", "period": 2000, "voter_id": None, "vote_code": "1"},
            ]
        )
        store = load_votes(df, column_map={}, verbose=False)
        assert store.height == 1
        assert store.rejected == 2

    def test_exact_duplicates_collapse(self):
        row = {"case_id": "c1", "period": 2000, "voter_id": "a", "vote_code": "1"}
        store = load_votes(_canonical([row, row]), column_map={}, verbose=False)
        assert store.height == 1
        assert store.duplicates_collapsed == 1

    def test_conflicting_duplicates_raise(self):
        df = _canonical(
            [
                {"case_id": "c1", "period": 2000, "voter_id": "a", "vote_code": "1"},
                {"case_id": "c1", "period": 2000, "voter_id": "a", "vote_code": "2"},
            ]
        )
        with pytest.raises(SchemaError, match="conflicting"):
            load_votes(df, column_map={}, verbose=False)

    def test_case_split_across_periods_raises(self):
        df = _canonical(
            [
                {"case_id": "k", "period": 2000, "voter_id": "A", "vote_code": "1"},
                {"case_id": "k", "period": 2001, "voter_id": "B", "vote_code": "1"},
                {"case_id": "k", "period": 2001, "voter_id": "C", "vote_code": "2"},
            ]
        )
        with pytest.raises(SchemaError, match="more than one period.*'k'"):
            load_votes(df, column_map={}, verbose=False)

    def test_null_period_row_not_a_second_period(self):
        df = _canonical(
            [
                {"case_id": "k", "period": 2000, "voter_id": "A", "vote_code": "1"},
                {"case_id": "k", "period": None, "voter_id": "B", "vote_code": "1"},
            ]
        )
        store = load_votes(df, column_map={}, verbose=False)
        assert store.periods() == [2000]
        assert store.rejected == 1

    def test_verbose_prints_summary(self, scdb_frame, capsys):
        load_votes(scdb_frame)
        out = capsys.readouterr().out
        assert "Loaded 6 records" in out


# ── Store helpers ────────────────────────────────────────────────────────────


class TestStore:
    """VoteRecordStore filtering and summary helpers."""

    def test_from_records(self):
        store = VoteRecordStore.from_records(
            [
                VoteRecord("c1", 2000, "a", "Alpha", "1", 1.0, True),
                VoteRecord("c1", 2000, "b", "", "2", None, False),
            ]
        )
        assert store.height == 2
        # Blank names fall back to the voter id
        assert store.names() == {"a": "Alpha", "b": "b"}

    def test_qualifying_drops_null_votes(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.qualifying().height == 5

    def test_filter_periods(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.filter_periods(2001, 2001).periods() == [2001]
        assert store.filter_periods(start=2001).height == 3
        assert store.filter_periods(end=2000).height == 3

    def test_filter_periods_inverted_range(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        with pytest.raises(InvalidParameterError):
            store.filter_periods(2001, 2000)

    def test_filter_voters(self, scdb_frame):
        store = load_votes(scdb_frame, verbose=False)
        assert store.filter_voters([1, 3]).voters() == ["1", "3"]

    def test_active_and_current_voters(self):
        df = _canonical(
            [
                {"case_id": "c1", "period": 1990, "voter_id": "old", "vote_code": "1"},
                {"case_id": "c1", "period": 1990, "voter_id": "mid", "vote_code": "1"},
                {"case_id": "c2", "period": 2000, "voter_id": "mid", "vote_code": "1"},
                {"case_id": "c2", "period": 2000, "voter_id": "new", "vote_code": "2"},
            ]
        )
        store = load_votes(df, column_map={}, verbose=False)
        assert store.active_voters(1985, 1995) == ["mid", "old"]
        assert store.current_voters() == ["mid", "new"]

    def test_current_voters_empty(self):
        df = _canonical([])
        store = load_votes(df, column_map={}, verbose=False)
        assert store.current_voters() == []

    def test_summary_counts(self, scdb_frame):
        s = load_votes(scdb_frame, verbose=False).summary()
        assert s["records"] == 6
        assert s["cases"] == 2
        assert s["voters"] == 3
        assert s["first_period"] == 2000
        assert s["last_period"] == 2001
        assert s["missing_vote_code"] == 1
        assert s["missing_direction"] == 2
