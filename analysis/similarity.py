"""
Supreme Court — Similarity Matrix (Phase 3)

Arranges pairwise agreement rates into a dense symmetric voter x voter matrix.
Pairs that never sat together hold an explicit no-data sentinel (NaN) and are
resolved only by an explicit imputation policy before any consumer that needs
a complete matrix (clustering).

Usage:
  uv run python analysis/similarity.py [--release 2024_01] [--agreement-dir DIR]
      [--justices-dir DIR] [--imputation zero|exclude|mean]

Outputs (in results/<dataset>/similarity/<date>/):
  - data/:   agreement_matrix.parquet (all justices, NaN = never shared a case),
             agreement_matrix_current.parquet (most recent court)
  - plots/:  current_court_heatmap.png
  - run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
import seaborn as sns

from court_votes.errors import InsufficientDataError, InvalidParameterError, NoDataError
from court_votes.release import CURRENT_RELEASE

try:
    from analysis.run_context import RunContext, upstream_dir
except ModuleNotFoundError:
    from run_context import RunContext, upstream_dir  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

SIMILARITY_PRIMER = """\
# Similarity Matrix

## Purpose

Dense voter x voter view of the pairwise agreement rates, the input to
hierarchical clustering and the source of the current-court heatmap.

## Method

- Entry (A, B) is the lifetime agreement rate of A and B. When both (A, B)
  and (B, A) derivations exist they are averaged, so the matrix is symmetric.
- The diagonal is 1.0.
- Pairs that never sat on the same case are **NaN**, never 0. Justices a
  century apart have no agreement, not zero agreement.

## Imputation (before clustering)

| Strategy | Effect |
|----------|--------|
| `zero` | NaN -> 0.0 (never-shared pairs treated as total disagreement) |
| `exclude` | Drop the justice with the most missing entries until none remain |
| `mean` | NaN -> mean of all observed off-diagonal entries |

`agreement_matrix.parquet` is saved **unresolved**; the clustering phase
applies its own `--imputation`.
"""

# ── Constants ────────────────────────────────────────────────────────────────

IMPUTATION_STRATEGIES = ("zero", "exclude", "mean")
DEFAULT_IMPUTATION = "zero"
ANNOTATE_MAX_VOTERS = 15
HEATMAP_CMAP = "RdYlBu"


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Similarity Matrix")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument(
        "--agreement-dir", default=None, help="Override agreement results directory"
    )
    parser.add_argument(
        "--justices-dir", default=None, help="Override justices results directory"
    )
    parser.add_argument(
        "--imputation",
        default=DEFAULT_IMPUTATION,
        choices=IMPUTATION_STRATEGIES,
        help=f"Imputation for the current-court heatmap (default: {DEFAULT_IMPUTATION})",
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


# ── Matrix Type ──────────────────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class SimilarityMatrix:
    """Symmetric N x N agreement matrix over an ordered voter universe.

    ``values`` is read-only. Off-diagonal entries are in [0, 1] or NaN (no
    shared cases); the diagonal is 1.0.
    """

    voters: tuple[str, ...]
    values: np.ndarray
    names: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        n = len(self.voters)
        arr = np.array(self.values, dtype=np.float64)
        if arr.shape != (n, n):
            raise ValueError(f"Matrix shape {arr.shape} does not match {n} voters")
        if len(set(self.voters)) != n:
            raise ValueError("Duplicate voters in matrix universe")
        off_diag = arr[~np.eye(n, dtype=bool)]
        finite = off_diag[np.isfinite(off_diag)]
        if finite.size and (finite.min() < 0.0 or finite.max() > 1.0):
            raise InvalidParameterError(
                f"Similarity values must lie in [0, 1] (found {finite.min():.4g} to {finite.max():.4g})"
            )
        arr.flags.writeable = False
        object.__setattr__(self, "values", arr)

    @property
    def size(self) -> int:
        return len(self.voters)

    def index(self, voter: str) -> int:
        try:
            return self.voters.index(str(voter))
        except ValueError:
            raise KeyError(f"Voter {voter!r} is not in the matrix universe") from None

    def get(self, a: str, b: str) -> float:
        """Similarity of a pair. Raises NoDataError if the pair never shared a case."""
        value = self.values[self.index(a), self.index(b)]
        if np.isnan(value):
            raise NoDataError(f"No shared cases for pair ({a}, {b})")
        return float(value)

    def missing_pairs(self) -> list[tuple[str, str]]:
        """Unordered pairs (a < b in universe order) holding the no-data sentinel."""
        rows, cols = np.where(np.triu(np.isnan(self.values), k=1))
        return [(self.voters[i], self.voters[j]) for i, j in zip(rows, cols)]

    def label(self, voter: str) -> str:
        return self.names.get(voter, voter)

    def to_polars(self) -> pl.DataFrame:
        """Labelled frame: a voter_id column followed by one column per voter."""
        cols: dict[str, list] = {"voter_id": list(self.voters)}
        for i, v in enumerate(self.voters):
            cols[v] = self.values[:, i].tolist()
        schema = {"voter_id": pl.Utf8, **{v: pl.Float64 for v in self.voters}}
        return pl.DataFrame(cols, schema=schema)

    @classmethod
    def from_polars(cls, df: pl.DataFrame, names: dict[str, str] | None = None) -> SimilarityMatrix:
        """Inverse of to_polars (nulls are read as the no-data sentinel)."""
        voters = tuple(df["voter_id"].to_list())
        arr = df.select(list(voters)).fill_null(np.nan).to_numpy().astype(np.float64)
        return cls(voters, arr, dict(names or {}))


# ── Phase 1: Build ───────────────────────────────────────────────────────────


def build_matrix(
    aggregates: pl.DataFrame,
    voter_universe: list[str] | None = None,
) -> SimilarityMatrix:
    """Arrange pairwise agreement rates into a symmetric matrix.

    ``aggregates`` is a pairwise table (voter_a, voter_b, agreement_rate,
    optional name_a / name_b). The universe defaults to every voter appearing
    in it, sorted; an explicit universe restricts the view and may include
    voters with no observed pair (their row is all NaN off the diagonal).
    """
    if voter_universe is None:
        universe = sorted(
            set(aggregates["voter_a"].to_list()) | set(aggregates["voter_b"].to_list())
        )
    else:
        universe = sorted({str(v) for v in voter_universe})

    n = len(universe)
    pos = {v: i for i, v in enumerate(universe)}

    rows = aggregates.filter(
        pl.col("voter_a").is_in(universe)
        & pl.col("voter_b").is_in(universe)
        & (pl.col("voter_a") != pl.col("voter_b"))
    )
    i = np.array([pos[v] for v in rows["voter_a"].to_list()], dtype=np.int64)
    j = np.array([pos[v] for v in rows["voter_b"].to_list()], dtype=np.int64)
    rate = rows["agreement_rate"].to_numpy().astype(np.float64)

    # Every derivation contributes to both (A, B) and (B, A); the mean of the
    # contributions makes the matrix symmetric by construction.
    sums = np.zeros((n, n))
    counts = np.zeros((n, n))
    np.add.at(sums, (i, j), rate)
    np.add.at(sums, (j, i), rate)
    np.add.at(counts, (i, j), 1)
    np.add.at(counts, (j, i), 1)

    with np.errstate(invalid="ignore", divide="ignore"):
        values = np.where(counts > 0, sums / counts, np.nan)
    np.fill_diagonal(values, 1.0)

    names: dict[str, str] = {}
    if "name_a" in rows.columns and "name_b" in rows.columns:
        names.update(zip(rows["voter_a"].to_list(), rows["name_a"].to_list()))
        names.update(zip(rows["voter_b"].to_list(), rows["name_b"].to_list()))

    return SimilarityMatrix(tuple(universe), values, names)


# ── Phase 2: Resolve / Reorder ───────────────────────────────────────────────


def resolve(matrix: SimilarityMatrix, strategy: str = DEFAULT_IMPUTATION) -> SimilarityMatrix:
    """Return a copy of ``matrix`` with every no-data entry resolved.

    Raises InvalidParameterError for an unknown strategy and
    InsufficientDataError when "mean" has no observed entry to impute from.
    """
    if strategy not in IMPUTATION_STRATEGIES:
        raise InvalidParameterError(
            f"Unknown imputation strategy {strategy!r} (expected one of {IMPUTATION_STRATEGIES})"
        )

    values = np.array(matrix.values)
    missing = np.isnan(values)
    if not missing.any():
        return matrix

    if strategy == "zero":
        values[missing] = 0.0
        return SimilarityMatrix(matrix.voters, values, matrix.names)

    if strategy == "mean":
        upper = values[np.triu_indices(matrix.size, k=1)]
        observed = upper[~np.isnan(upper)]
        if observed.size == 0:
            raise InsufficientDataError("No observed pairs to compute an imputation mean")
        values[missing] = float(observed.mean())
        return SimilarityMatrix(matrix.voters, values, matrix.names)

    # exclude: repeatedly drop the voter with the most missing entries
    keep = list(range(matrix.size))
    while True:
        sub = missing[np.ix_(keep, keep)]
        per_voter = sub.sum(axis=1)
        if per_voter.max() == 0:
            break
        worst = keep[int(np.argmax(per_voter))]
        print(f"  Excluding {matrix.label(matrix.voters[worst])} ({int(per_voter.max())} missing)")
        keep.remove(worst)

    voters = tuple(matrix.voters[k] for k in keep)
    return SimilarityMatrix(voters, values[np.ix_(keep, keep)], matrix.names)


def order_by(matrix: SimilarityMatrix, voters: list[str]) -> SimilarityMatrix:
    """Restrict to ``voters`` and reorder rows/columns to match their order.

    Raises KeyError for a voter outside the universe.
    """
    idx = [matrix.index(v) for v in voters]
    return SimilarityMatrix(
        tuple(matrix.voters[i] for i in idx),
        matrix.values[np.ix_(idx, idx)],
        matrix.names,
    )


def ideology_order(voters, justice_stats: pl.DataFrame) -> list[str]:
    """Voters sorted conservative to liberal by mean direction (unknowns last)."""
    direction = dict(
        zip(justice_stats["voter_id"].to_list(), justice_stats["avg_direction"].to_list())
    )

    def key(v: str) -> tuple:
        d = direction.get(v)
        return (d is None, d if d is not None else 0.0, v)

    return sorted(voters, key=key)


# ── Phase 3: Plots ───────────────────────────────────────────────────────────


def plot_agreement_heatmap(matrix: SimilarityMatrix, title: str, path: Path) -> None:
    """Agreement heatmap; cells are annotated for small matrices, NaN cells left blank."""
    n = matrix.size
    labels = [matrix.label(v) for v in matrix.voters]
    size = max(6, n * 0.6)
    fig, ax = plt.subplots(figsize=(size + 1.5, size))
    sns.heatmap(
        matrix.values,
        mask=np.isnan(matrix.values),
        cmap=HEATMAP_CMAP,
        vmin=0.0,
        vmax=1.0,
        annot=n <= ANNOTATE_MAX_VOTERS,
        fmt=".2f",
        xticklabels=labels,
        yticklabels=labels,
        square=True,
        linewidths=0.5 if n <= ANNOTATE_MAX_VOTERS else 0,
        cbar_kws={"label": "Agreement rate"},
        ax=ax,
    )
    ax.set_title(title)
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    fig.tight_layout()
    save_fig(fig, path)


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    agreement_dir = upstream_dir(args.release, "agreement", args.agreement_dir)
    justices_dir = upstream_dir(args.release, "justices", args.justices_dir)

    with RunContext(
        dataset=args.release,
        analysis_name="similarity",
        params=vars(args),
        primer=SIMILARITY_PRIMER,
    ) as ctx:
        print(f"Supreme Court Similarity Matrix — Release {args.release}")
        print(f"Agreement: {agreement_dir}")
        print(f"Output:    {ctx.run_dir}")

        print_header("PHASE 1: BUILD MATRIX")
        pairwise = pl.read_parquet(agreement_dir / "data" / "pairwise_agreement.parquet")
        observations = pl.read_parquet(agreement_dir / "data" / "pair_observations.parquet")
        matrix = build_matrix(pairwise)
        n_missing = len(matrix.missing_pairs())
        n_pairs = matrix.size * (matrix.size - 1) // 2
        print(f"  Voters: {matrix.size}")
        print(f"  Pairs without shared cases: {n_missing} / {n_pairs}")
        matrix.to_polars().write_parquet(ctx.data_dir / "agreement_matrix.parquet")
        print("  Saved: agreement_matrix.parquet")

        print_header("PHASE 2: CURRENT COURT")
        last = observations["period"].max()
        current = sorted(
            set(observations.filter(pl.col("period") == last)["voter_a"].to_list())
            | set(observations.filter(pl.col("period") == last)["voter_b"].to_list())
        )
        stats_path = justices_dir / "data" / "justice_stats.parquet"
        if stats_path.exists():
            current = ideology_order(current, pl.read_parquet(stats_path))
        else:
            print("  No justices phase output; keeping id order")
        resolved = resolve(build_matrix(pairwise, current), args.imputation)
        current_matrix = order_by(resolved, [v for v in current if v in resolved.voters])
        labels = ", ".join(current_matrix.label(v) for v in current_matrix.voters)
        print(f"  Current court ({last}): {labels}")
        current_matrix.to_polars().write_parquet(ctx.data_dir / "agreement_matrix_current.parquet")
        print("  Saved: agreement_matrix_current.parquet")

        print_header("GENERATING PLOTS")
        plot_agreement_heatmap(
            current_matrix,
            f"Current Court Agreement Matrix ({last})",
            ctx.plots_dir / "current_court_heatmap.png",
        )

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
