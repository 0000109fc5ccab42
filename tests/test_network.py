"""
Tests for the voting network in analysis/network.py.

Covers thresholded graph construction (including the single-edge scenario and
zero-rate pairs), centrality on small hand-checkable graphs, deterministic
community detection on two obvious blocs, partition comparison, and the
threshold sweep.

Run: uv run pytest tests/test_network.py -v
"""

import math
import sys
from pathlib import Path

import polars as pl
import pytest

# Add project root to path so we can import analysis.network
sys.path.insert(0, str(Path(__file__).parent.parent))

from analysis.network import (
    CENTRALITY_SCHEMA,
    attach_ideology,
    build_graph,
    centrality_metrics,
    communities_frame,
    compare_partitions,
    compute_network_summary,
    detect_communities,
    detect_communities_multi_resolution,
    run_threshold_sweep,
)
from court_votes.errors import InvalidParameterError

# ── Fixtures ─────────────────────────────────────────────────────────────────


def _pairs(rows: list[tuple]) -> pl.DataFrame:
    """Pairwise table from (voter_a, voter_b, agreement_rate, cases_compared) tuples."""
    return pl.DataFrame(
        rows,
        schema={
            "voter_a": pl.Utf8,
            "voter_b": pl.Utf8,
            "agreement_rate": pl.Float64,
            "cases_compared": pl.Int64,
        },
        orient="row",
    )


@pytest.fixture
def single_strong_pair() -> pl.DataFrame:
    """Only (A, B) clears 0.9."""
    return _pairs(
        [
            ("A", "B", 0.95, 200),
            ("A", "C", 0.60, 200),
            ("B", "C", 0.55, 200),
            ("C", "D", 0.85, 200),
        ]
    )


@pytest.fixture
def two_blocs() -> pl.DataFrame:
    """Triangles A-B-C and D-E-F at 0.9, bridged by C-D at 0.6."""
    rows = [
        ("A", "B", 0.9, 100),
        ("A", "C", 0.9, 100),
        ("B", "C", 0.9, 100),
        ("D", "E", 0.9, 100),
        ("D", "F", 0.9, 100),
        ("E", "F", 0.9, 100),
        ("C", "D", 0.6, 100),
    ]
    cross = [(a, b, 0.2, 100) for a in "AB" for b in "EF"]
    return _pairs(rows + cross)


# ── build_graph() ────────────────────────────────────────────────────────────


class TestBuildGraph:
    """build_graph() keeps pairs at or above the threshold."""

    def test_scenario_single_edge(self, single_strong_pair):
        G = build_graph(single_strong_pair, threshold=0.9)
        assert G.number_of_edges() == 1
        assert sorted(G.nodes()) == ["A", "B"]

    def test_edge_attributes(self, single_strong_pair):
        G = build_graph(single_strong_pair, threshold=0.9)
        data = G.edges["A", "B"]
        assert data["weight"] == pytest.approx(0.95)
        assert data["distance"] == pytest.approx(1 / 0.95)
        assert data["cases"] == 200

    def test_threshold_inclusive(self, single_strong_pair):
        G = build_graph(single_strong_pair, threshold=0.85)
        assert G.has_edge("C", "D")

    def test_min_cases(self):
        agg = _pairs([("A", "B", 0.9, 50), ("C", "D", 0.9, 150)])
        G = build_graph(agg, threshold=0.5, min_cases=100)
        assert sorted(G.edges()) == [("C", "D")]

    def test_zero_rate_never_connects(self):
        agg = _pairs([("A", "B", 0.0, 100), ("B", "C", 0.4, 100)])
        G = build_graph(agg, threshold=0.0)
        assert not G.has_edge("A", "B")
        assert "A" not in G
        assert G.has_edge("B", "C")

    def test_empty_graph_above_all_rates(self, single_strong_pair):
        G = build_graph(single_strong_pair, threshold=1.0)
        assert G.number_of_nodes() == 0

    def test_names_attached(self):
        agg = _pairs([("1", "2", 0.8, 10)]).with_columns(
            pl.lit("Holmes").alias("name_a"), pl.lit("Brandeis").alias("name_b")
        )
        G = build_graph(agg, threshold=0.5)
        assert G.nodes["1"]["name"] == "Holmes"
        assert G.nodes["2"]["name"] == "Brandeis"

    @pytest.mark.parametrize("threshold", [-0.1, 1.5, float("nan"), "0.5"])
    def test_invalid_threshold(self, single_strong_pair, threshold):
        with pytest.raises(InvalidParameterError):
            build_graph(single_strong_pair, threshold=threshold)

    def test_negative_min_cases(self, single_strong_pair):
        with pytest.raises(InvalidParameterError):
            build_graph(single_strong_pair, threshold=0.5, min_cases=-1)


class TestSummary:
    """compute_network_summary() and attach_ideology()."""

    def test_single_edge(self, single_strong_pair):
        summary = compute_network_summary(build_graph(single_strong_pair, threshold=0.9))
        assert summary["n_nodes"] == 2
        assert summary["n_edges"] == 1
        assert summary["density"] == 1.0
        assert summary["n_components"] == 1
        assert summary["assortativity_direction"] is None

    def test_empty(self, single_strong_pair):
        summary = compute_network_summary(build_graph(single_strong_pair, threshold=1.0))
        assert summary["n_nodes"] == 0
        assert summary["n_components"] == 0
        assert summary["density"] == 0.0

    def test_attach_ideology(self, single_strong_pair):
        G = build_graph(single_strong_pair, threshold=0.9)
        stats = pl.DataFrame({"voter_id": ["A"], "avg_direction": [1.3]})
        attach_ideology(G, stats)
        assert G.nodes["A"]["direction"] == 1.3
        assert G.nodes["B"]["direction"] is None


# ── Centrality ───────────────────────────────────────────────────────────────


class TestCentrality:
    """centrality_metrics() returns one row per node, sorted by voter_id."""

    def test_columns_and_order(self, two_blocs):
        df = centrality_metrics(build_graph(two_blocs, threshold=0.5))
        assert df.columns == list(CENTRALITY_SCHEMA)
        assert df["voter_id"].to_list() == ["A", "B", "C", "D", "E", "F"]

    def test_bridges_are_central(self, two_blocs):
        df = centrality_metrics(build_graph(two_blocs, threshold=0.5))
        top = df.sort("betweenness", "voter_id", descending=[True, False])["voter_id"][:2]
        assert sorted(top.to_list()) == ["C", "D"]

    def test_degree_values(self, two_blocs):
        df = centrality_metrics(build_graph(two_blocs, threshold=0.5))
        c = df.filter(pl.col("voter_id") == "C").row(0, named=True)
        assert c["degree"] == pytest.approx(3 / 5)
        assert c["weighted_degree"] == pytest.approx(0.9 + 0.9 + 0.6)

    def test_two_node_component_eigenvector(self, single_strong_pair):
        df = centrality_metrics(build_graph(single_strong_pair, threshold=0.9))
        assert df["eigenvector"].to_list() == pytest.approx([1 / math.sqrt(2)] * 2)

    def test_pagerank_sums_to_one(self, two_blocs):
        df = centrality_metrics(build_graph(two_blocs, threshold=0.5))
        assert df["pagerank"].sum() == pytest.approx(1.0)

    def test_empty_graph(self, single_strong_pair):
        df = centrality_metrics(build_graph(single_strong_pair, threshold=1.0))
        assert df.height == 0
        assert df.columns == list(CENTRALITY_SCHEMA)


# ── Communities ──────────────────────────────────────────────────────────────


class TestCommunities:
    """detect_communities() recovers obvious blocs deterministically."""

    @pytest.mark.parametrize("method", ["louvain", "greedy"])
    def test_recovers_blocs(self, two_blocs, method):
        partition = detect_communities(build_graph(two_blocs, threshold=0.5), method=method)
        assert partition == {"A": 0, "B": 0, "C": 0, "D": 1, "E": 1, "F": 1}

    def test_deterministic_under_row_order(self, two_blocs):
        shuffled = two_blocs.sample(fraction=1.0, shuffle=True, seed=11)
        a = detect_communities(build_graph(two_blocs, threshold=0.5))
        b = detect_communities(build_graph(shuffled, threshold=0.5))
        assert a == b

    def test_empty_graph(self, single_strong_pair):
        assert detect_communities(build_graph(single_strong_pair, threshold=1.0)) == {}

    def test_unknown_method(self, two_blocs):
        with pytest.raises(InvalidParameterError):
            detect_communities(build_graph(two_blocs, threshold=0.5), method="spectral")

    def test_multi_resolution(self, two_blocs):
        G = build_graph(two_blocs, threshold=0.5)
        partitions, df = detect_communities_multi_resolution(G, resolutions=[0.5, 1.0])
        assert sorted(partitions) == [0.5, 1.0]
        assert df["resolution"].to_list() == [0.5, 1.0]
        assert df.filter(pl.col("resolution") == 1.0)["modularity"][0] > 0

    def test_communities_frame(self, two_blocs):
        G = build_graph(two_blocs, threshold=0.5)
        df = communities_frame(detect_communities(G), G)
        assert df.columns == ["voter_id", "voter_name", "community"]
        assert df["voter_name"].to_list() == ["A", "B", "C", "D", "E", "F"]


class TestComparePartitions:
    """compare_partitions() scores label agreement over common voters."""

    def test_identical_up_to_relabeling(self):
        result = compare_partitions({"a": 0, "b": 0, "c": 1}, {"a": 5, "b": 5, "c": 2})
        assert result == {"n_common": 3, "ari": 1.0, "nmi": 1.0}

    def test_common_voters_only(self):
        result = compare_partitions({"a": 0, "b": 1, "z": 0}, {"a": 1, "b": 0, "y": 1})
        assert result["n_common"] == 2

    def test_too_few_common(self):
        assert compare_partitions({"a": 0}, {"a": 0, "b": 1}) == {
            "n_common": 1,
            "ari": None,
            "nmi": None,
        }


# ── Threshold sweep ──────────────────────────────────────────────────────────


class TestThresholdSweep:
    """run_threshold_sweep() reports statistics per threshold."""

    def test_one_row_per_threshold(self, two_blocs):
        sweep = run_threshold_sweep(two_blocs, thresholds=[0.1, 0.5, 0.95])
        assert sweep["threshold"].to_list() == [0.1, 0.5, 0.95]

    def test_edges_non_increasing(self, two_blocs):
        sweep = run_threshold_sweep(two_blocs)
        edges = sweep["n_edges"].to_list()
        assert edges == sorted(edges, reverse=True)

    def test_counts(self, two_blocs):
        sweep = run_threshold_sweep(two_blocs, thresholds=[0.1, 0.7, 0.95])
        assert sweep["n_edges"].to_list() == [11, 6, 0]
        assert sweep["n_components"].to_list() == [1, 2, 0]
        assert sweep["modularity"][2] == 0.0
