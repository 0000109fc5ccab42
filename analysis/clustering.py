"""
Supreme Court — Hierarchical Clustering (Phase 4)

Agglomerative clustering of justices on dissimilarity 1 - agreement. Builds
the full merge tree, scores flat cuts by silhouette, cuts into exactly k
voting blocs, and describes each bloc by its members' ideology.

Usage:
  uv run python analysis/clustering.py [--release 2024_01] [--similarity-dir DIR]
      [--justices-dir DIR] [--method complete] [--imputation zero] [--k K]

Outputs (in results/<dataset>/clustering/<date>/):
  - data/:   cluster_assignments.parquet, cluster_summary.parquet,
             linkage_merges.parquet, silhouette_scores.parquet
  - plots/:  dendrogram.png
  - filtering_manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
from scipy.cluster.hierarchy import cophenet, dendrogram, linkage
from scipy.cluster.hierarchy import cut_tree as scipy_cut_tree
from scipy.spatial.distance import squareform
from sklearn.metrics import silhouette_score

from court_votes.errors import InsufficientDataError, InvalidKError, InvalidParameterError
from court_votes.output import save_csvs
from court_votes.release import CURRENT_RELEASE

try:
    from analysis.run_context import RunContext, upstream_dir
except ModuleNotFoundError:
    from run_context import RunContext, upstream_dir  # type: ignore[no-redef]

try:
    from analysis.justices import ideology_colors, ideology_label_expr
    from analysis.similarity import DEFAULT_IMPUTATION, SimilarityMatrix, resolve
except ModuleNotFoundError:
    from justices import ideology_colors, ideology_label_expr  # type: ignore[no-redef]
    from similarity import DEFAULT_IMPUTATION, SimilarityMatrix, resolve  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

CLUSTERING_PRIMER = """\
# Hierarchical Clustering

## Purpose

Discovers voting blocs: groups of justices with high agreement inside the group
and low agreement across groups.

## Method

1. Resolve no-data entries of the similarity matrix (`--imputation`, default
   `zero`: justices who never sat together are treated as maximally
   dissimilar).
2. Dissimilarity = 1 - agreement (diagonal 0), condensed for scipy.
3. Agglomerative linkage (`--method`: single, complete, average, weighted,
   ward). Default `complete`.
4. Cophenetic correlation measures how faithfully the tree preserves the
   original distances (>= 0.70 is good).
5. Silhouette score (precomputed distances) for each k in the scan; the best
   k is used unless `--k` is given.
6. The cut yields exactly k groups. Cluster labels are numbered by first
   appearance in voter-id order, so identical inputs give identical labels.

## Inputs

- `similarity/latest/data/agreement_matrix.parquet` (unresolved, NaN = no data)
- `justices/latest/data/justice_stats.parquet` (optional, for ideology)

## Outputs

| File | Description |
|------|-------------|
| `cluster_assignments.parquet` | voter_id, voter_name, cluster |
| `cluster_summary.parquet` | Per-cluster size, mean direction, label |
| `linkage_merges.parquet` | Binary merge sequence with heights |
| `silhouette_scores.parquet` | Silhouette per k |
| `dendrogram.png` | Tree with leaves colored by ideology |
"""

# ── Constants ────────────────────────────────────────────────────────────────

LINKAGE_METHODS = ("single", "complete", "average", "weighted", "ward")
LINKAGE_METHOD = "complete"
K_RANGE = range(2, 8)
DEFAULT_K = 2
COPHENETIC_THRESHOLD = 0.70


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Hierarchical Clustering")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument(
        "--similarity-dir", default=None, help="Override similarity results directory"
    )
    parser.add_argument(
        "--justices-dir", default=None, help="Override justices results directory"
    )
    parser.add_argument(
        "--method",
        default=LINKAGE_METHOD,
        choices=LINKAGE_METHODS,
        help=f"Linkage method (default: {LINKAGE_METHOD})",
    )
    parser.add_argument(
        "--imputation",
        default=DEFAULT_IMPUTATION,
        help=f"Missing-pair imputation: zero, exclude, mean (default: {DEFAULT_IMPUTATION})",
    )
    parser.add_argument(
        "--k", type=int, default=None, help="Number of clusters (default: best silhouette)"
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


# ── Tree Type ────────────────────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class ClusterTree:
    """Agglomerative merge tree over an ordered set of voters.

    Attributes:
        voters: Leaf order (leaf i of ``linkage`` is voters[i]).
        linkage: scipy linkage matrix, one row per binary merge.
        method: Linkage method used.
        cophenetic: Cophenetic correlation (NaN with fewer than 3 leaves).
        imputation: Strategy used to resolve missing pairs.
        distances: Square dissimilarity matrix the tree was built from.
        names: voter_id -> display name.
    """

    voters: tuple[str, ...]
    linkage: np.ndarray
    method: str
    cophenetic: float
    imputation: str
    distances: np.ndarray
    names: dict[str, str] = field(default_factory=dict)

    @property
    def n_leaves(self) -> int:
        return len(self.voters)

    def merges(self) -> pl.DataFrame:
        """Merge sequence: step, left, right, height, size.

        Leaves are named by voter_id; merged nodes as "#<node index>" using
        scipy's numbering (n_leaves + step).
        """
        n = self.n_leaves

        def node(idx: float) -> str:
            i = int(idx)
            return self.voters[i] if i < n else f"#{i}"

        return pl.DataFrame(
            {
                "step": list(range(len(self.linkage))),
                "left": [node(row[0]) for row in self.linkage],
                "right": [node(row[1]) for row in self.linkage],
                "height": [float(row[2]) for row in self.linkage],
                "size": [int(row[3]) for row in self.linkage],
            },
            schema={
                "step": pl.Int64,
                "left": pl.Utf8,
                "right": pl.Utf8,
                "height": pl.Float64,
                "size": pl.Int64,
            },
        )


# ── Phase 1: Build Tree ──────────────────────────────────────────────────────


def cluster(
    matrix: SimilarityMatrix,
    method: str = LINKAGE_METHOD,
    imputation: str = DEFAULT_IMPUTATION,
) -> ClusterTree:
    """Agglomerative clustering on 1 - agreement.

    Raises InvalidParameterError for an unknown method or imputation, and
    InsufficientDataError when fewer than two voters remain after imputation.
    """
    if method not in LINKAGE_METHODS:
        raise InvalidParameterError(
            f"Unknown linkage method {method!r} (expected one of {LINKAGE_METHODS})"
        )

    resolved = resolve(matrix, imputation)
    if resolved.size < 2:
        raise InsufficientDataError(
            f"Clustering needs at least 2 voters, got {resolved.size} after '{imputation}' imputation"
        )

    distance_arr = 1.0 - np.array(resolved.values)
    distance_arr = (distance_arr + distance_arr.T) / 2
    np.fill_diagonal(distance_arr, 0.0)
    distance_arr = np.clip(distance_arr, 0.0, 1.0)

    condensed = squareform(distance_arr, checks=False)
    Z = linkage(condensed, method=method)

    coph_corr = float("nan")
    if len(condensed) > 1 and np.ptp(condensed) > 0:
        coph_corr = float(cophenet(Z, condensed)[0])

    return ClusterTree(
        voters=resolved.voters,
        linkage=Z,
        method=method,
        cophenetic=coph_corr,
        imputation=imputation,
        distances=distance_arr,
        names=dict(matrix.names),
    )


# ── Phase 2: Cuts ────────────────────────────────────────────────────────────


def _cut_labels(tree: ClusterTree, k: int) -> list[int]:
    if not isinstance(k, (int, np.integer)) or isinstance(k, bool):
        raise InvalidKError(f"k must be an integer, got {k!r}")
    if k < 1 or k > tree.n_leaves:
        raise InvalidKError(f"k={k} outside [1, {tree.n_leaves}]")
    raw = scipy_cut_tree(tree.linkage, n_clusters=[int(k)]).flatten()
    relabel: dict[int, int] = {}
    for lbl in raw:
        relabel.setdefault(int(lbl), len(relabel))
    return [relabel[int(lbl)] for lbl in raw]


def cut_tree(tree: ClusterTree, k: int) -> dict[str, int]:
    """Cut into exactly k groups.

    Labels run 0..k-1 in order of first appearance over the tree's voter
    order. Raises InvalidKError if k < 1 or k exceeds the number of leaves.
    """
    return dict(zip(tree.voters, _cut_labels(tree, k)))


def score_cuts(tree: ClusterTree, k_range: range = K_RANGE) -> pl.DataFrame:
    """Silhouette score of each cut on the tree's own distances.

    k values outside [2, n_leaves - 1] are skipped.

    Returns DataFrame with: k, silhouette.
    """
    rows = []
    for k in k_range:
        if k < 2 or k > tree.n_leaves - 1:
            continue
        labels = _cut_labels(tree, k)
        sil = silhouette_score(tree.distances, labels, metric="precomputed")
        rows.append({"k": k, "silhouette": float(sil)})
        print(f"    k={k}: silhouette = {sil:.4f}")
    return pl.DataFrame(rows, schema={"k": pl.Int64, "silhouette": pl.Float64})


def optimal_k(scores: pl.DataFrame, default: int = DEFAULT_K) -> int:
    """k with the highest silhouette (smallest k on ties)."""
    if scores.height == 0:
        return default
    return int(scores.sort("silhouette", "k", descending=[True, False])["k"][0])


def assignments_frame(assignments: dict[str, int], names: dict[str, str]) -> pl.DataFrame:
    voters = sorted(assignments)
    return pl.DataFrame(
        {
            "voter_id": voters,
            "voter_name": [names.get(v, v) for v in voters],
            "cluster": [assignments[v] for v in voters],
        },
        schema={"voter_id": pl.Utf8, "voter_name": pl.Utf8, "cluster": pl.Int64},
    )


def characterize_clusters(
    assignments: dict[str, int],
    justice_stats: pl.DataFrame | None,
) -> pl.DataFrame:
    """Per-cluster size, members and mean ideology.

    Returns DataFrame with: cluster, n_members, members, avg_direction,
    avg_dissent_rate, label.
    """
    frame = pl.DataFrame(
        {"voter_id": list(assignments), "cluster": list(assignments.values())},
        schema={"voter_id": pl.Utf8, "cluster": pl.Int64},
    )
    if justice_stats is not None:
        frame = frame.join(
            justice_stats.select("voter_id", "voter_name", "avg_direction", "dissent_rate"),
            on="voter_id",
            how="left",
        )
    else:
        frame = frame.with_columns(
            pl.lit(None, dtype=pl.Utf8).alias("voter_name"),
            pl.lit(None, dtype=pl.Float64).alias("avg_direction"),
            pl.lit(None, dtype=pl.Float64).alias("dissent_rate"),
        )
    frame = frame.with_columns(pl.col("voter_name").fill_null(pl.col("voter_id")))

    summary = (
        frame.group_by("cluster")
        .agg(
            pl.len().cast(pl.Int64).alias("n_members"),
            pl.col("voter_name").sort().str.join(", ").alias("members"),
            pl.col("avg_direction").mean(),
            pl.col("dissent_rate").mean().alias("avg_dissent_rate"),
        )
        .with_columns(ideology_label_expr().alias("label"))
        .sort("cluster")
    )

    for row in summary.iter_rows(named=True):
        direction = (
            f", direction={row['avg_direction']:.3f}" if row["avg_direction"] is not None else ""
        )
        label = f" ({row['label']})" if row["label"] is not None else ""
        print(f"    Cluster {row['cluster']}{label}: n={row['n_members']}{direction}")
    return summary


# ── Phase 3: Plots ───────────────────────────────────────────────────────────


def plot_dendrogram(
    tree: ClusterTree,
    justice_stats: pl.DataFrame | None,
    out_dir: Path,
) -> None:
    """Dendrogram with leaf labels colored by mean ideological direction."""
    direction = {}
    if justice_stats is not None:
        direction = dict(
            zip(justice_stats["voter_id"].to_list(), justice_stats["avg_direction"].to_list())
        )
    labels = [tree.names.get(v, v) for v in tree.voters]
    label_color = dict(zip(labels, ideology_colors([direction.get(v) for v in tree.voters])))

    fig, ax = plt.subplots(figsize=(12, max(6, tree.n_leaves * 0.25)))
    dendrogram(tree.linkage, labels=labels, ax=ax, orientation="left", leaf_font_size=7)
    for lbl in ax.get_yticklabels():
        lbl.set_color(label_color.get(lbl.get_text(), "#888888"))
    ax.set_xlabel("Distance (1 - agreement)")
    ax.set_title(f"Justice Clustering Dendrogram ({tree.method} linkage)")
    fig.tight_layout()
    save_fig(fig, out_dir / "dendrogram.png")


def save_filtering_manifest(manifest: dict, out_dir: Path) -> None:
    path = out_dir / "filtering_manifest.json"
    with open(path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)
    print(f"  Saved: {path.name}")


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    similarity_dir = upstream_dir(args.release, "similarity", args.similarity_dir)
    justices_dir = upstream_dir(args.release, "justices", args.justices_dir)

    with RunContext(
        dataset=args.release,
        analysis_name="clustering",
        params=vars(args),
        primer=CLUSTERING_PRIMER,
    ) as ctx:
        print(f"Supreme Court Hierarchical Clustering — Release {args.release}")
        print(f"Similarity: {similarity_dir}")
        print(f"Output:     {ctx.run_dir}")

        print_header("PHASE 1: LOADING DATA")
        stats_path = justices_dir / "data" / "justice_stats.parquet"
        justice_stats = pl.read_parquet(stats_path) if stats_path.exists() else None
        names = {}
        if justice_stats is not None:
            names = dict(
                zip(justice_stats["voter_id"].to_list(), justice_stats["voter_name"].to_list())
            )
        else:
            print("  No justices phase output; clusters will not carry ideology")
        matrix = SimilarityMatrix.from_polars(
            pl.read_parquet(similarity_dir / "data" / "agreement_matrix.parquet"), names
        )
        print(f"  Voters: {matrix.size}, missing pairs: {len(matrix.missing_pairs())}")

        print_header("PHASE 2: HIERARCHICAL CLUSTERING")
        tree = cluster(matrix, method=args.method, imputation=args.imputation)
        status = "OK" if tree.cophenetic >= COPHENETIC_THRESHOLD else "WARNING"
        print(f"  Leaves: {tree.n_leaves}")
        print(f"  Cophenetic correlation = {tree.cophenetic:.4f} ({status})")
        tree.merges().write_parquet(ctx.data_dir / "linkage_merges.parquet")
        print("  Saved: linkage_merges.parquet")

        print_header("PHASE 3: CHOOSING K")
        scores = score_cuts(tree)
        scores.write_parquet(ctx.data_dir / "silhouette_scores.parquet")
        k = args.k if args.k is not None else optimal_k(scores)
        print(f"  Using k = {k}{' (user)' if args.k is not None else ' (best silhouette)'}")

        print_header("PHASE 4: CLUSTER ASSIGNMENTS")
        assignments = cut_tree(tree, k)
        assignment_df = assignments_frame(assignments, tree.names)
        assignment_df.write_parquet(ctx.data_dir / "cluster_assignments.parquet")
        summary = characterize_clusters(assignments, justice_stats)
        summary.write_parquet(ctx.data_dir / "cluster_summary.parquet")
        print("  Saved: cluster_assignments.parquet")
        print("  Saved: cluster_summary.parquet")
        save_csvs(ctx.run_dir, {"clusters": assignment_df})

        print_header("GENERATING PLOTS")
        plot_dendrogram(tree, justice_stats, ctx.plots_dir)

        print_header("FILTERING MANIFEST")
        save_filtering_manifest(
            {
                "method": tree.method,
                "imputation": tree.imputation,
                "n_voters_in": matrix.size,
                "n_voters_clustered": tree.n_leaves,
                "excluded": sorted(set(matrix.voters) - set(tree.voters)),
                "cophenetic": tree.cophenetic,
                "k": k,
            },
            ctx.run_dir,
        )

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
