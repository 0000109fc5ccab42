"""
Tests for the similarity matrix in analysis/similarity.py.

Checks symmetry, the unit diagonal, the explicit no-data sentinel for pairs
that never shared a case, each imputation strategy, reordering, and the
labelled polars round trip used between phases.

Run: uv run pytest tests/test_similarity.py -v
"""

import sys
from pathlib import Path

import numpy as np
import polars as pl
import pytest

# Add project root to path so we can import analysis.similarity
sys.path.insert(0, str(Path(__file__).parent.parent))

from analysis.similarity import (
    SimilarityMatrix,
    build_matrix,
    ideology_order,
    order_by,
    resolve,
)
from court_votes.errors import InsufficientDataError, InvalidParameterError, NoDataError

# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def aggregates() -> pl.DataFrame:
    """Pairwise table for voters A-D. C and D never sat together."""
    return pl.DataFrame(
        {
            "voter_a": ["A", "A", "A", "B", "B"],
            "voter_b": ["B", "C", "D", "C", "D"],
            "name_a": ["Alpha", "Alpha", "Alpha", "Beta", "Beta"],
            "name_b": ["Beta", "Gamma", "Delta", "Gamma", "Delta"],
            "times_agreed": [9.0, 2.0, 5.0, 4.0, 6.0],
            "cases_compared": [10, 10, 10, 10, 10],
            "agreement_rate": [0.9, 0.2, 0.5, 0.4, 0.6],
        }
    )


# ── build_matrix() ───────────────────────────────────────────────────────────


class TestBuildMatrix:
    """build_matrix() arranges rates into a symmetric matrix with a NaN sentinel."""

    def test_universe_sorted(self, aggregates):
        assert build_matrix(aggregates).voters == ("A", "B", "C", "D")

    def test_symmetric(self, aggregates):
        m = build_matrix(aggregates)
        assert np.allclose(m.values, m.values.T, equal_nan=True)
        assert m.get("A", "C") == m.get("C", "A") == pytest.approx(0.2)

    def test_unit_diagonal(self, aggregates):
        m = build_matrix(aggregates)
        assert np.all(np.diag(m.values) == 1.0)

    def test_unobserved_pair_is_sentinel(self, aggregates):
        m = build_matrix(aggregates)
        assert np.isnan(m.values[m.index("C"), m.index("D")])
        with pytest.raises(NoDataError):
            m.get("C", "D")

    def test_unknown_voter_key_error(self, aggregates):
        m = build_matrix(aggregates)
        with pytest.raises(KeyError):
            m.get("A", "Z")

    def test_missing_pairs(self, aggregates):
        assert build_matrix(aggregates).missing_pairs() == [("C", "D")]

    def test_values_read_only(self, aggregates):
        m = build_matrix(aggregates)
        with pytest.raises(ValueError):
            m.values[0, 1] = 0.0

    def test_explicit_universe_restricts(self, aggregates):
        m = build_matrix(aggregates, voter_universe=["B", "A"])
        assert m.voters == ("A", "B")
        assert m.get("A", "B") == pytest.approx(0.9)

    def test_universe_voter_without_pairs(self, aggregates):
        m = build_matrix(aggregates, voter_universe=["A", "Z"])
        assert m.get("Z", "Z") == 1.0
        assert m.missing_pairs() == [("A", "Z")]

    def test_both_derivations_averaged(self):
        agg = pl.DataFrame(
            {
                "voter_a": ["A", "B"],
                "voter_b": ["B", "A"],
                "agreement_rate": [0.6, 0.8],
            }
        )
        m = build_matrix(agg)
        assert m.get("A", "B") == pytest.approx(0.7)
        assert m.get("B", "A") == pytest.approx(0.7)

    def test_names_carried(self, aggregates):
        m = build_matrix(aggregates)
        assert m.label("C") == "Gamma"
        assert m.label("Z") == "Z"

    def test_shape_mismatch_rejected(self):
        with pytest.raises(ValueError):
            SimilarityMatrix(("A", "B"), np.eye(3))

    def test_out_of_range_rate_rejected(self, aggregates):
        bad = aggregates.with_columns(
            pl.when(pl.col("voter_b") == "B")
            .then(1.5)
            .otherwise(pl.col("agreement_rate"))
            .alias("agreement_rate")
        )
        with pytest.raises(InvalidParameterError, match=r"\[0, 1\]"):
            build_matrix(bad)

    def test_negative_entry_rejected(self):
        values = np.array([[1.0, -0.1], [-0.1, 1.0]])
        with pytest.raises(InvalidParameterError):
            SimilarityMatrix(("A", "B"), values)

    def test_bounds_and_sentinel_accepted(self):
        values = np.array([[1.0, 0.0, np.nan], [0.0, 1.0, 1.0], [np.nan, 1.0, 1.0]])
        m = SimilarityMatrix(("A", "B", "C"), values)
        assert m.get("A", "B") == 0.0
        assert m.missing_pairs() == [("A", "C")]


# ── resolve() ────────────────────────────────────────────────────────────────


class TestResolve:
    """Imputation strategies for the no-data sentinel."""

    def test_zero(self, aggregates):
        m = resolve(build_matrix(aggregates), "zero")
        assert m.get("C", "D") == 0.0
        assert m.missing_pairs() == []

    def test_mean(self, aggregates):
        m = resolve(build_matrix(aggregates), "mean")
        assert m.get("C", "D") == pytest.approx((0.9 + 0.2 + 0.5 + 0.4 + 0.6) / 5)
        assert m.get("A", "B") == pytest.approx(0.9)

    def test_exclude_drops_most_missing(self):
        # D lacks B and C; B and C each lack only D
        agg = pl.DataFrame(
            {
                "voter_a": ["A", "A", "A", "B"],
                "voter_b": ["B", "C", "D", "C"],
                "agreement_rate": [0.9, 0.2, 0.5, 0.4],
            }
        )
        m = resolve(build_matrix(agg), "exclude")
        assert m.voters == ("A", "B", "C")
        assert m.missing_pairs() == []

    def test_exclude_tie_drops_first(self, aggregates):
        m = resolve(build_matrix(aggregates), "exclude")
        assert m.voters == ("A", "B", "D")

    def test_complete_matrix_unchanged(self):
        agg = pl.DataFrame({"voter_a": ["A"], "voter_b": ["B"], "agreement_rate": [0.5]})
        m = build_matrix(agg)
        for strategy in ("zero", "exclude", "mean"):
            assert resolve(m, strategy) is m

    def test_original_not_mutated(self, aggregates):
        m = build_matrix(aggregates)
        resolve(m, "zero")
        assert np.isnan(m.values[m.index("C"), m.index("D")])

    def test_unknown_strategy(self, aggregates):
        with pytest.raises(InvalidParameterError):
            resolve(build_matrix(aggregates), "median")

    def test_mean_without_observations(self):
        m = SimilarityMatrix(("A", "B"), np.array([[1.0, np.nan], [np.nan, 1.0]]))
        with pytest.raises(InsufficientDataError):
            resolve(m, "mean")


# ── Ordering and serialization ───────────────────────────────────────────────


class TestOrdering:
    """order_by() / ideology_order() and the polars round trip."""

    def test_order_by(self, aggregates):
        m = order_by(build_matrix(aggregates), ["C", "A"])
        assert m.voters == ("C", "A")
        assert m.values[0, 1] == pytest.approx(0.2)

    def test_order_by_unknown_voter(self, aggregates):
        with pytest.raises(KeyError):
            order_by(build_matrix(aggregates), ["A", "Z"])

    def test_ideology_order(self):
        stats = pl.DataFrame(
            {"voter_id": ["A", "B", "C"], "avg_direction": [1.8, 1.2, None]},
            schema={"voter_id": pl.Utf8, "avg_direction": pl.Float64},
        )
        assert ideology_order(["A", "B", "C", "D"], stats) == ["B", "A", "C", "D"]

    def test_polars_round_trip(self, aggregates):
        m = build_matrix(aggregates)
        df = m.to_polars()
        assert df.columns == ["voter_id", "A", "B", "C", "D"]
        back = SimilarityMatrix.from_polars(df, m.names)
        assert back.voters == m.voters
        assert np.allclose(back.values, m.values, equal_nan=True)
