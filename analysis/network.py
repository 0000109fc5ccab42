"""
Supreme Court — Voting Network (Phase 5)

Builds a weighted agreement network where justices are nodes and edges connect
pairs whose lifetime agreement rate clears a threshold. Computes centrality
measures to find structurally central justices and runs modularity-based
community detection to test whether the network recovers the blocs found by
hierarchical clustering.

Usage:
  uv run python analysis/network.py [--release 2024_01] [--agreement-dir DIR]
      [--justices-dir DIR] [--clustering-dir DIR] [--threshold 0.5]
      [--min-cases 100] [--community-method louvain]

Outputs (in results/<dataset>/network/<date>/):
  - data/:   centrality.parquet, communities.parquet, community_resolution.parquet,
             threshold_sweep.parquet
  - plots/:  voting_network.png, community_network.png, threshold_sweep.png
  - network_summary.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
import json
import math
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import community as community_louvain  # python-louvain
import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import polars as pl
from sklearn.metrics import adjusted_rand_score, normalized_mutual_info_score

from court_votes.errors import InvalidParameterError
from court_votes.output import save_csvs
from court_votes.release import CURRENT_RELEASE

try:
    from analysis.run_context import RunContext, upstream_dir
except ModuleNotFoundError:
    from run_context import RunContext, upstream_dir  # type: ignore[no-redef]

try:
    from analysis.justices import IDEOLOGY_CMAP, IDEOLOGY_NORM, ideology_colors
except ModuleNotFoundError:
    from justices import IDEOLOGY_CMAP, IDEOLOGY_NORM, ideology_colors  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

NETWORK_PRIMER = """\
# Voting Network

## Purpose

Represents the Court as a graph: justices are nodes, and an edge joins two
justices whose lifetime agreement rate is at least the threshold. Centrality
shows who sits at the structural middle of the Court; community detection
finds blocs without fixing their number in advance.

## Method

### Graph

- Edge when `agreement_rate >= threshold` and `cases_compared >= min_cases`
  (defaults 0.5 and 100 shared cases).
- Edge attributes: `weight` = agreement rate, `distance` = 1 / weight (for
  shortest-path measures), `cases` = shared cases.
- Justices with no qualifying edge are not in the graph.
- A pair with agreement 0.0 never forms an edge, even at threshold 0.

### Centrality

- **Degree**: fraction of other nodes connected.
- **Weighted degree**: sum of edge weights.
- **Betweenness / closeness**: on `distance`, so strong agreement = short path.
  Closeness is computed within each connected component.
- **Eigenvector**: weighted, per connected component.
- **PageRank**: weighted random-walk importance.

### Communities

Louvain modularity maximization (python-louvain, fixed seed) or networkx greedy
modularity. Nodes are inserted in id order and community ids are renumbered by
their smallest member, so identical inputs give identical labels. Agreement
with the hierarchical clusters is reported as ARI and NMI.

## Caveats

- Topology is threshold-dependent; check `threshold_sweep.parquet`.
- Justices from different eras never share cases and so never connect.
"""

# ── Constants ────────────────────────────────────────────────────────────────

RANDOM_SEED = 42
EDGE_THRESHOLD_DEFAULT = 0.5
MIN_CASES_DEFAULT = 100
COMMUNITY_METHODS = ("louvain", "greedy")
LOUVAIN_RESOLUTIONS = [0.5, 0.75, 1.0, 1.25, 1.5, 2.0]
THRESHOLD_SWEEP = [0.5, 0.6, 0.7, 0.8, 0.9]
TOP_LABEL_N = 15
COMMUNITY_CMAP = "tab10"

CENTRALITY_SCHEMA = {
    "voter_id": pl.Utf8,
    "voter_name": pl.Utf8,
    "degree": pl.Float64,
    "weighted_degree": pl.Float64,
    "betweenness": pl.Float64,
    "closeness": pl.Float64,
    "eigenvector": pl.Float64,
    "pagerank": pl.Float64,
}


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Voting Network")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument(
        "--agreement-dir", default=None, help="Override agreement results directory"
    )
    parser.add_argument(
        "--justices-dir", default=None, help="Override justices results directory"
    )
    parser.add_argument(
        "--clustering-dir", default=None, help="Override clustering results directory"
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=EDGE_THRESHOLD_DEFAULT,
        help=f"Minimum agreement rate for an edge (default: {EDGE_THRESHOLD_DEFAULT})",
    )
    parser.add_argument(
        "--min-cases",
        type=int,
        default=MIN_CASES_DEFAULT,
        help=f"Minimum shared cases for an edge (default: {MIN_CASES_DEFAULT})",
    )
    parser.add_argument(
        "--community-method",
        default="louvain",
        choices=COMMUNITY_METHODS,
        help="Community detection algorithm (default: louvain)",
    )
    parser.add_argument(
        "--resolution", type=float, default=1.0, help="Modularity resolution (default: 1.0)"
    )
    return parser.parse_args()


def print_header(title: str) -> None:
    width = 80
    print(f"\n{'=' * width}")
    print(f"  {title}")
    print(f"{'=' * width}")


def save_fig(fig: plt.Figure, path: Path, dpi: int = 150) -> None:
    fig.savefig(path, dpi=dpi, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    print(f"  Saved: {path.name}")


def _ordered_copy(G: nx.Graph) -> nx.Graph:
    """Copy of G with nodes and edges inserted in sorted order."""
    H = nx.Graph()
    H.add_nodes_from(sorted(G.nodes(data=True)))
    edges = sorted((min(u, v), max(u, v), d) for u, v, d in G.edges(data=True))
    H.add_edges_from(edges)
    return H


# ── Phase 1: Build Graph ─────────────────────────────────────────────────────


def build_graph(
    aggregates: pl.DataFrame,
    threshold: float = EDGE_THRESHOLD_DEFAULT,
    min_cases: int = 0,
) -> nx.Graph:
    """Undirected agreement graph from a pairwise table.

    Edge when agreement_rate >= threshold and cases_compared >= min_cases;
    zero-rate pairs never connect. Only voters with at least one edge become
    nodes. Node attribute ``name`` comes from name_a / name_b when present.

    Raises InvalidParameterError for a threshold outside [0, 1] or a negative
    min_cases.
    """
    if (
        not isinstance(threshold, (int, float))
        or math.isnan(threshold)
        or not 0.0 <= threshold <= 1.0
    ):
        raise InvalidParameterError(f"threshold must be in [0, 1], got {threshold!r}")
    if min_cases < 0:
        raise InvalidParameterError(f"min_cases must be >= 0, got {min_cases}")

    edges = aggregates.filter(
        (pl.col("agreement_rate") >= threshold)
        & (pl.col("agreement_rate") > 0)
        & (pl.col("cases_compared") >= min_cases)
        & (pl.col("voter_a") != pl.col("voter_b"))
    ).sort("voter_a", "voter_b")

    has_names = "name_a" in edges.columns and "name_b" in edges.columns
    names: dict[str, str] = {}
    if has_names:
        names.update(zip(edges["voter_a"].to_list(), edges["name_a"].to_list()))
        names.update(zip(edges["voter_b"].to_list(), edges["name_b"].to_list()))

    G = nx.Graph()
    nodes = sorted(set(edges["voter_a"].to_list()) | set(edges["voter_b"].to_list()))
    for v in nodes:
        G.add_node(v, name=names.get(v, v))

    for row in edges.iter_rows(named=True):
        rate = float(row["agreement_rate"])
        G.add_edge(
            row["voter_a"],
            row["voter_b"],
            weight=rate,
            distance=1.0 / rate,
            cases=int(row["cases_compared"]),
        )
    return G


def attach_ideology(G: nx.Graph, justice_stats: pl.DataFrame) -> nx.Graph:
    """Set node attribute ``direction`` (mean vote direction, None if unknown)."""
    direction = dict(
        zip(justice_stats["voter_id"].to_list(), justice_stats["avg_direction"].to_list())
    )
    for n in G.nodes():
        G.nodes[n]["direction"] = direction.get(n)
    return G


def compute_network_summary(G: nx.Graph) -> dict:
    """Size, density, clustering, component count and ideology assortativity."""
    n_nodes = G.number_of_nodes()
    n_edges = G.number_of_edges()

    avg_clustering = nx.average_clustering(G, weight="weight") if n_edges > 0 else 0.0
    transitivity = nx.transitivity(G) if n_edges > 0 else 0.0

    assortativity = None
    if n_edges > 0 and all(G.nodes[n].get("direction") is not None for n in G.nodes()):
        try:
            value = nx.numeric_assortativity_coefficient(G, "direction")
            assortativity = None if math.isnan(value) else round(value, 4)
        except (ValueError, ZeroDivisionError):
            assortativity = None

    return {
        "n_nodes": n_nodes,
        "n_edges": n_edges,
        "density": round(nx.density(G), 4) if n_nodes > 1 else 0.0,
        "avg_clustering": round(avg_clustering, 4),
        "transitivity": round(transitivity, 4),
        "n_components": nx.number_connected_components(G) if n_nodes > 0 else 0,
        "assortativity_direction": assortativity,
    }


# ── Phase 2: Centrality ──────────────────────────────────────────────────────


def _eigenvector_by_component(G: nx.Graph) -> dict[str, float]:
    eigenvector: dict[str, float] = {}
    for component in nx.connected_components(G):
        if len(component) <= 2:
            # Principal eigenvector of a single edge (or lone node), unit norm
            for n in component:
                eigenvector[n] = 1.0 / math.sqrt(len(component))
            continue
        subgraph = G.subgraph(component)
        try:
            eigenvector.update(nx.eigenvector_centrality_numpy(subgraph, weight="weight"))
        except (nx.NetworkXError, nx.AmbiguousSolution, np.linalg.LinAlgError):
            for n in component:
                eigenvector[n] = 0.0
    return eigenvector


def centrality_metrics(G: nx.Graph) -> pl.DataFrame:
    """Centrality measures for every node, sorted by voter_id.

    Returns DataFrame with: voter_id, voter_name, degree, weighted_degree,
    betweenness, closeness, eigenvector, pagerank.
    """
    if G.number_of_nodes() == 0:
        return pl.DataFrame(schema=CENTRALITY_SCHEMA)

    nodes = sorted(G.nodes())
    degree = nx.degree_centrality(G)
    weighted_degree = dict(G.degree(weight="weight"))
    betweenness = nx.betweenness_centrality(G, weight="distance", normalized=True)
    eigenvector = _eigenvector_by_component(G)

    closeness: dict[str, float] = {}
    for component in nx.connected_components(G):
        if len(component) > 1:
            closeness.update(nx.closeness_centrality(G.subgraph(component), distance="distance"))
        else:
            for n in component:
                closeness[n] = 0.0

    pagerank = nx.pagerank(G, weight="weight")

    rows = [
        {
            "voter_id": n,
            "voter_name": G.nodes[n].get("name", n),
            "degree": float(degree[n]),
            "weighted_degree": float(weighted_degree[n]),
            "betweenness": float(betweenness[n]),
            "closeness": float(closeness.get(n, 0.0)),
            "eigenvector": float(eigenvector.get(n, 0.0)),
            "pagerank": float(pagerank.get(n, 0.0)),
        }
        for n in nodes
    ]
    return pl.DataFrame(rows, schema=CENTRALITY_SCHEMA)


# ── Phase 3: Community Detection ─────────────────────────────────────────────


def _renumber(partition: dict[str, int]) -> dict[str, int]:
    """Renumber community ids 0..c-1 in order of each community's smallest member."""
    groups: dict[int, list[str]] = {}
    for node, comm in partition.items():
        groups.setdefault(comm, []).append(node)
    ordered = sorted(groups.values(), key=min)
    result = {node: i for i, members in enumerate(ordered) for node in members}
    return dict(sorted(result.items()))


def detect_communities(
    G: nx.Graph,
    method: str = "louvain",
    resolution: float = 1.0,
) -> dict[str, int]:
    """Modularity-based community assignment for every node.

    Raises InvalidParameterError for an unknown method.
    """
    if method not in COMMUNITY_METHODS:
        raise InvalidParameterError(
            f"Unknown community method {method!r} (expected one of {COMMUNITY_METHODS})"
        )
    if G.number_of_nodes() == 0:
        return {}

    H = _ordered_copy(G)
    if method == "louvain":
        partition = community_louvain.best_partition(
            H, weight="weight", resolution=resolution, random_state=RANDOM_SEED
        )
    else:
        communities = nx.community.greedy_modularity_communities(
            H, weight="weight", resolution=resolution
        )
        partition = {n: i for i, members in enumerate(communities) for n in members}
    return _renumber(partition)


def partition_modularity(G: nx.Graph, partition: dict[str, int]) -> float:
    if G.number_of_edges() == 0:
        return 0.0
    return float(community_louvain.modularity(partition, G, weight="weight"))


def detect_communities_multi_resolution(
    G: nx.Graph,
    resolutions: list[float] | None = None,
    method: str = "louvain",
) -> tuple[dict[float, dict[str, int]], pl.DataFrame]:
    """Community detection at several resolution parameters.

    Returns:
        partitions: {resolution: {voter_id: community_id}}
        resolution_df: DataFrame with (resolution, n_communities, modularity)
    """
    if resolutions is None:
        resolutions = LOUVAIN_RESOLUTIONS

    partitions: dict[float, dict[str, int]] = {}
    rows = []
    for res in resolutions:
        partition = detect_communities(G, method=method, resolution=res)
        partitions[res] = partition
        n_communities = len(set(partition.values()))
        modularity = partition_modularity(G, partition)
        rows.append(
            {
                "resolution": float(res),
                "n_communities": n_communities,
                "modularity": round(modularity, 4),
            }
        )
        print(f"    Resolution {res:.2f}: {n_communities} communities, modularity={modularity:.4f}")

    resolution_df = pl.DataFrame(
        rows,
        schema={"resolution": pl.Float64, "n_communities": pl.Int64, "modularity": pl.Float64},
    )
    return partitions, resolution_df


def compare_partitions(a: dict[str, int], b: dict[str, int]) -> dict:
    """ARI and NMI between two labelings over their common voters.

    Both are None when fewer than two voters are shared.
    """
    common = sorted(set(a) & set(b))
    if len(common) < 2:
        return {"n_common": len(common), "ari": None, "nmi": None}
    labels_a = [a[v] for v in common]
    labels_b = [b[v] for v in common]
    return {
        "n_common": len(common),
        "ari": round(float(adjusted_rand_score(labels_a, labels_b)), 4),
        "nmi": round(float(normalized_mutual_info_score(labels_a, labels_b)), 4),
    }


def communities_frame(partition: dict[str, int], G: nx.Graph) -> pl.DataFrame:
    voters = sorted(partition)
    return pl.DataFrame(
        {
            "voter_id": voters,
            "voter_name": [G.nodes[v].get("name", v) for v in voters],
            "community": [partition[v] for v in voters],
        },
        schema={"voter_id": pl.Utf8, "voter_name": pl.Utf8, "community": pl.Int64},
    )


# ── Phase 4: Threshold Sensitivity ───────────────────────────────────────────


def run_threshold_sweep(
    aggregates: pl.DataFrame,
    thresholds: list[float] | None = None,
    min_cases: int = 0,
) -> pl.DataFrame:
    """Network statistics at each edge threshold."""
    if thresholds is None:
        thresholds = THRESHOLD_SWEEP

    rows = []
    for t in thresholds:
        G = build_graph(aggregates, threshold=t, min_cases=min_cases)
        summary = compute_network_summary(G)
        modularity = partition_modularity(G, detect_communities(G)) if G.number_of_edges() else 0.0
        rows.append(
            {
                "threshold": float(t),
                "n_nodes": summary["n_nodes"],
                "n_edges": summary["n_edges"],
                "density": summary["density"],
                "n_components": summary["n_components"],
                "avg_clustering": summary["avg_clustering"],
                "modularity": round(modularity, 4),
            }
        )
        print(
            f"    Threshold {t:.2f}: {summary['n_nodes']} nodes, {summary['n_edges']} edges, "
            f"components={summary['n_components']}, modularity={modularity:.4f}"
        )

    return pl.DataFrame(
        rows,
        schema={
            "threshold": pl.Float64,
            "n_nodes": pl.Int64,
            "n_edges": pl.Int64,
            "density": pl.Float64,
            "n_components": pl.Int64,
            "avg_clustering": pl.Float64,
            "modularity": pl.Float64,
        },
    )


# ── Phase 5: Plots ───────────────────────────────────────────────────────────


def compute_layout(G: nx.Graph) -> dict:
    """Deterministic spring layout (edges pull harder with higher agreement)."""
    if G.number_of_nodes() == 0:
        return {}
    return nx.spring_layout(
        _ordered_copy(G),
        weight="weight",
        seed=RANDOM_SEED,
        k=2.0 / np.sqrt(G.number_of_nodes()),
        iterations=100,
    )


def plot_network_layout(
    G: nx.Graph,
    title: str,
    out_path: Path,
    partition: dict[str, int] | None = None,
    pos: dict | None = None,
    label_top_n: int = TOP_LABEL_N,
) -> dict:
    """Network drawing colored by ideology, or by community when given a partition.

    Returns the position dict for reuse.
    """
    if G.number_of_nodes() == 0:
        print(f"  Skipping {out_path.name}: empty graph")
        return {}
    if pos is None:
        pos = compute_layout(G)

    fig, ax = plt.subplots(figsize=(14, 10))
    nodes = sorted(G.nodes())

    if partition is not None:
        cmap = plt.get_cmap(COMMUNITY_CMAP)
        node_colors = [cmap(partition.get(n, 0) % cmap.N) for n in nodes]
    else:
        node_colors = ideology_colors([G.nodes[n].get("direction") for n in nodes])
        sm = plt.cm.ScalarMappable(cmap=IDEOLOGY_CMAP, norm=IDEOLOGY_NORM)
        sm.set_array([])
        plt.colorbar(sm, ax=ax, label="Direction (1 = Cons, 2 = Lib)", shrink=0.8)

    degrees = dict(G.degree())
    max_deg = max(degrees.values()) if degrees else 1
    node_sizes = [100 + 300 * degrees[n] / max_deg for n in nodes]

    edge_weights = [d.get("weight", 0.5) for _, _, d in G.edges(data=True)]
    max_w = max(edge_weights) if edge_weights else 1.0
    edge_widths = [0.3 + 1.5 * w / max_w for w in edge_weights]
    nx.draw_networkx_edges(G, pos, ax=ax, alpha=0.2, width=edge_widths, edge_color="#888888")
    nx.draw_networkx_nodes(
        G,
        pos,
        nodelist=nodes,
        ax=ax,
        node_color=node_colors,
        node_size=node_sizes,
        alpha=0.85,
        edgecolors="white",
        linewidths=0.5,
    )

    if label_top_n > 0:
        betweenness = nx.betweenness_centrality(G, weight="distance", normalized=True)
        top_nodes = sorted(nodes, key=lambda n: (-betweenness[n], n))[:label_top_n]
        labels = {n: G.nodes[n].get("name", n) for n in top_nodes}
        nx.draw_networkx_labels(G, pos, labels, ax=ax, font_size=7, font_weight="bold")

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.axis("off")
    save_fig(fig, out_path)
    return pos


def plot_threshold_sweep(sweep_df: pl.DataFrame, out_path: Path) -> None:
    """Network statistics vs agreement threshold."""
    fig, axes = plt.subplots(2, 2, figsize=(12, 9))
    thresholds = sweep_df["threshold"].to_list()
    metrics = [
        ("n_edges", "Number of Connections"),
        ("density", "Network Density"),
        ("n_components", "Number of Separate Groups"),
        ("modularity", "How Clustered (Modularity)"),
    ]
    for ax, (col, label) in zip(axes.flatten(), metrics):
        ax.plot(thresholds, sweep_df[col].to_list(), "o-", color="#333333", linewidth=2, markersize=6)
        ax.set_xlabel("Agreement threshold", fontsize=10)
        ax.set_ylabel(label, fontsize=10)
        ax.set_title(label, fontsize=11, fontweight="bold")
        ax.grid(True, alpha=0.3)
    fig.suptitle("How Does the Network Change as We Raise the Bar for Agreement?", fontsize=13)
    fig.tight_layout()
    save_fig(fig, out_path)


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    agreement_dir = upstream_dir(args.release, "agreement", args.agreement_dir)
    justices_dir = upstream_dir(args.release, "justices", args.justices_dir)
    clustering_dir = upstream_dir(args.release, "clustering", args.clustering_dir)

    with RunContext(
        dataset=args.release,
        analysis_name="network",
        params=vars(args),
        primer=NETWORK_PRIMER,
    ) as ctx:
        print(f"Supreme Court Voting Network — Release {args.release}")
        print(f"Agreement: {agreement_dir}")
        print(f"Output:    {ctx.run_dir}")

        print_header("PHASE 1: BUILD GRAPH")
        pairwise = pl.read_parquet(agreement_dir / "data" / "pairwise_agreement.parquet")
        G = build_graph(pairwise, threshold=args.threshold, min_cases=args.min_cases)
        stats_path = justices_dir / "data" / "justice_stats.parquet"
        if stats_path.exists():
            attach_ideology(G, pl.read_parquet(stats_path))
        else:
            print("  No justices phase output; nodes will not carry ideology")
        summary = compute_network_summary(G)
        for key, value in summary.items():
            print(f"    {key}: {value}")

        print_header("PHASE 2: CENTRALITY")
        centralities = centrality_metrics(G)
        centralities.write_parquet(ctx.data_dir / "centrality.parquet")
        print("  Saved: centrality.parquet")
        print("\n  Most central justices (eigenvector):")
        top = centralities.sort("eigenvector", "voter_id", descending=[True, False]).head(5)
        for row in top.iter_rows(named=True):
            print(f"    {row['voter_name']:20s} eigenvector={row['eigenvector']:.3f}")

        print_header("PHASE 3: COMMUNITIES")
        partition = detect_communities(G, method=args.community_method, resolution=args.resolution)
        summary["n_communities"] = len(set(partition.values()))
        summary["modularity"] = round(partition_modularity(G, partition), 4)
        print(f"  {summary['n_communities']} communities, modularity={summary['modularity']:.4f}")
        communities = communities_frame(partition, G)
        communities.write_parquet(ctx.data_dir / "communities.parquet")
        print("  Saved: communities.parquet")
        save_csvs(ctx.run_dir, {"communities": communities, "centrality": centralities})

        _, resolution_df = detect_communities_multi_resolution(G, method=args.community_method)
        resolution_df.write_parquet(ctx.data_dir / "community_resolution.parquet")
        print("  Saved: community_resolution.parquet")

        assignments_path = clustering_dir / "data" / "cluster_assignments.parquet"
        if assignments_path.exists():
            clusters = pl.read_parquet(assignments_path)
            cluster_map = dict(zip(clusters["voter_id"].to_list(), clusters["cluster"].to_list()))
            comparison = compare_partitions(cluster_map, partition)
            summary["clusters_vs_communities"] = comparison
            print(
                f"  Clusters vs communities ({comparison['n_common']} justices): "
                f"ARI={comparison['ari']}, NMI={comparison['nmi']}"
            )
        else:
            print("  Skipping cluster comparison: no clustering phase output")

        print_header("PHASE 4: THRESHOLD SWEEP")
        sweep = run_threshold_sweep(pairwise, min_cases=args.min_cases)
        sweep.write_parquet(ctx.data_dir / "threshold_sweep.parquet")
        print("  Saved: threshold_sweep.parquet")

        with open(ctx.run_dir / "network_summary.json", "w") as f:
            json.dump(summary, f, indent=2, default=str)

        print_header("GENERATING PLOTS")
        pos = plot_network_layout(
            G,
            f"Supreme Court Voting Network (agreement >= {args.threshold:.0%}, "
            f"{args.min_cases}+ shared cases)",
            ctx.plots_dir / "voting_network.png",
        )
        plot_network_layout(
            G,
            f"Voting Communities ({args.community_method})",
            ctx.plots_dir / "community_network.png",
            partition=partition,
            pos=pos or None,
        )
        plot_threshold_sweep(sweep, ctx.plots_dir / "threshold_sweep.png")

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
