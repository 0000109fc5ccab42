"""
Supreme Court — Justice Profiles

Per-justice voting profile: tenure, mean ideological direction, majority /
dissent / concurrence rates, and a swing index measuring how close the mean
direction sits to the center of the scale. Also yearly per-justice patterns.

Usage:
  uv run python analysis/justices.py [--release 2024_01] [--data-file PATH]
      [--min-tenure 5] [--sparse-year-min-votes N]

Outputs (in results/<dataset>/justices/<date>/):
  - data/:   justice_stats.parquet, justice_yearly.parquet
  - plots/:  swing_justice_index.png, justice_ideology_scatter.png
  - run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
from matplotlib.colors import LinearSegmentedColormap, Normalize

from court_votes.config import (
    CONCURRENCE_CODES,
    DIRECTION_HALF_RANGE,
    DIRECTION_MIDPOINT,
    DISSENT_CODES,
)
from court_votes.output import save_csvs
from court_votes.records import VoteRecordStore, load_votes
from court_votes.release import CURRENT_RELEASE

try:
    from analysis.run_context import RunContext
except ModuleNotFoundError:
    from run_context import RunContext  # type: ignore[no-redef]

try:
    from analysis.agreement import resolve_data_file
except ModuleNotFoundError:
    from agreement import resolve_data_file  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

JUSTICES_PRIMER = """\
# Justice Profiles

## Purpose

One row per justice summarizing how they voted, used to label and order
justices in the similarity, clustering and network phases.

## Method

- **avg_direction**: mean SCDB direction over votes with a known direction
  (1 = conservative, 2 = liberal; unspecifiable directions are excluded).
- **majority_rate / dissent_rate / concurrence_rate**: fractions of votes with
  a known code. Dissent = vote code 2, concurrence = vote codes 3 and 4.
- **swing_index** = 1 - |avg_direction - 1.5| / 0.5. 1.0 is a perfect
  centrist; 0.0 votes entirely one way.
- **ideology_label**: fixed cut points on avg_direction (1.40, 1.48, 1.52,
  1.60).

## Yearly patterns

`justice_yearly.parquet` holds per-term direction, vote count and majority
rate. With `--sparse-year-min-votes N`, terms where a justice cast fewer than
N votes have their direction replaced by the justice's mean over fuller terms;
such rows carry `direction_imputed = true`. Off by default.
"""

# ── Constants ────────────────────────────────────────────────────────────────

MIN_TENURE = 5
TOP_SWING_N = 5
SWING_PLOT_N = 20

IDEOLOGY_CUTS = [
    (1.40, "Strong Conservative"),
    (1.48, "Conservative"),
    (1.52, "Moderate/Swing"),
    (1.60, "Liberal"),
]
IDEOLOGY_TOP_LABEL = "Strong Liberal"

# Red (conservative) through gray to blue (liberal), centered on the midpoint
IDEOLOGY_CMAP = LinearSegmentedColormap.from_list(
    "ideology", ["#E41A1C", "#B3B3B3", "#377EB8"]
)
IDEOLOGY_NORM = Normalize(vmin=1.0, vmax=2.0)


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Justice Profiles")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument("--data-file", default=None, help="Override vote CSV/parquet path")
    parser.add_argument(
        "--min-tenure",
        type=int,
        default=MIN_TENURE,
        help=f"Minimum tenure (years) for swing rankings (default: {MIN_TENURE})",
    )
    parser.add_argument(
        "--sparse-year-min-votes",
        type=int,
        default=None,
        help="Impute direction for terms with fewer votes than this (default: off)",
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


def ideology_colors(directions) -> list:
    """RGBA colors for mean directions; unknown directions are gray."""
    return [
        IDEOLOGY_CMAP(IDEOLOGY_NORM(d)) if d is not None and not np.isnan(d) else "#888888"
        for d in directions
    ]


def ideology_label_expr(col: str = "avg_direction") -> pl.Expr:
    expr = pl.when(pl.col(col).is_null()).then(None)
    for cut, label in IDEOLOGY_CUTS:
        expr = expr.when(pl.col(col) < cut).then(pl.lit(label))
    return expr.otherwise(pl.lit(IDEOLOGY_TOP_LABEL))


def _code_rate(codes: tuple[str, ...], name: str) -> pl.Expr:
    """Fraction of recorded vote codes that fall in ``codes`` (null when none recorded)."""
    return pl.col("vote_code").drop_nulls().is_in(list(codes)).cast(pl.Float64).mean().alias(name)


# ── Phase 1: Justice Statistics ──────────────────────────────────────────────


def compute_justice_stats(store: VoteRecordStore) -> pl.DataFrame:
    """One profile row per justice, ordered by first term then voter_id.

    Returns DataFrame with: voter_id, voter_name, first_period, last_period,
    tenure_years, total_votes, avg_direction, direction_sd, majority_rate,
    dissent_rate, concurrence_rate, swing_index, ideology_label.
    """
    stats = (
        store.frame.group_by("voter_id")
        .agg(
            pl.col("voter_name").first(),
            pl.col("period").min().alias("first_period"),
            pl.col("period").max().alias("last_period"),
            pl.len().cast(pl.Int64).alias("total_votes"),
            pl.col("direction").mean().alias("avg_direction"),
            pl.col("direction").std().alias("direction_sd"),
            pl.col("is_majority").cast(pl.Float64).mean().alias("majority_rate"),
            _code_rate(DISSENT_CODES, "dissent_rate"),
            _code_rate(CONCURRENCE_CODES, "concurrence_rate"),
        )
        .with_columns(
            (pl.col("last_period") - pl.col("first_period") + 1).alias("tenure_years"),
            (
                1.0 - (pl.col("avg_direction") - DIRECTION_MIDPOINT).abs() / DIRECTION_HALF_RANGE
            ).alias("swing_index"),
            ideology_label_expr().alias("ideology_label"),
        )
    )
    return stats.select(
        "voter_id",
        "voter_name",
        "first_period",
        "last_period",
        "tenure_years",
        "total_votes",
        "avg_direction",
        "direction_sd",
        "majority_rate",
        "dissent_rate",
        "concurrence_rate",
        "swing_index",
        "ideology_label",
    ).sort("first_period", "voter_id")


def compute_justice_yearly_patterns(
    store: VoteRecordStore,
    sparse_year_min_votes: int | None = None,
) -> pl.DataFrame:
    """Per (period, justice) direction, vote count and majority rate.

    When ``sparse_year_min_votes`` is set, a term with fewer votes than that
    gets the justice's mean direction over their other terms instead; the
    row is flagged with ``direction_imputed``. A justice with no fuller term
    keeps the observed value.

    Returns DataFrame with: period, voter_id, voter_name, avg_direction,
    n_votes, majority_rate, direction_imputed.
    """
    yearly = store.frame.group_by("period", "voter_id").agg(
        pl.col("voter_name").first(),
        pl.col("direction").mean().alias("avg_direction"),
        pl.len().cast(pl.Int64).alias("n_votes"),
        pl.col("is_majority").cast(pl.Float64).mean().alias("majority_rate"),
    )

    if sparse_year_min_votes is None:
        yearly = yearly.with_columns(pl.lit(False).alias("direction_imputed"))
    else:
        sparse = pl.col("n_votes") < sparse_year_min_votes
        fallback = (
            pl.when(~sparse).then(pl.col("avg_direction")).otherwise(None).mean().over("voter_id")
        )
        yearly = (
            yearly.with_columns(fallback.alias("_fallback"))
            .with_columns(
                (sparse & pl.col("_fallback").is_not_null()).alias("direction_imputed"),
            )
            .with_columns(
                pl.when(pl.col("direction_imputed"))
                .then(pl.col("_fallback"))
                .otherwise(pl.col("avg_direction"))
                .alias("avg_direction"),
            )
            .drop("_fallback")
        )

    return yearly.select(
        "period",
        "voter_id",
        "voter_name",
        "avg_direction",
        "n_votes",
        "majority_rate",
        "direction_imputed",
    ).sort("period", "voter_id")


def top_swing_justices(
    stats: pl.DataFrame,
    min_tenure: int = MIN_TENURE,
    n: int = TOP_SWING_N,
) -> pl.DataFrame:
    """Justices closest to the center among those with at least ``min_tenure`` years."""
    return (
        stats.filter(
            (pl.col("tenure_years") >= min_tenure) & pl.col("swing_index").is_not_null()
        )
        .sort("swing_index", "voter_id", descending=[True, False])
        .head(n)
    )


# ── Phase 2: Plots ───────────────────────────────────────────────────────────


def plot_swing_ranking(stats: pl.DataFrame, out_dir: Path, min_tenure: int = MIN_TENURE) -> None:
    """Horizontal bars of the most centrist justices, colored by direction."""
    top = top_swing_justices(stats, min_tenure=min_tenure, n=SWING_PLOT_N).reverse()
    if top.height == 0:
        print(f"  Skipping swing ranking: no justices with >= {min_tenure} years")
        return
    fig, ax = plt.subplots(figsize=(10, max(4, top.height * 0.4)))
    ax.barh(
        top["voter_name"].to_list(),
        top["swing_index"].to_list(),
        color=ideology_colors(top["avg_direction"].to_list()),
        height=0.7,
    )
    ax.set_xlabel("Swing Index (1 = perfect centrist)")
    ax.set_title(f"Swing Justice Index (justices with {min_tenure}+ year tenure)")
    fig.tight_layout()
    save_fig(fig, out_dir / "swing_justice_index.png")


def plot_ideology_scatter(stats: pl.DataFrame, out_dir: Path) -> None:
    """Mean direction vs dissent rate; marker size shows tenure."""
    df = stats.filter(pl.col("avg_direction").is_not_null() & pl.col("dissent_rate").is_not_null())
    if df.height == 0:
        print("  Skipping ideology scatter: no direction data")
        return
    fig, ax = plt.subplots(figsize=(12, 8))
    ax.scatter(
        df["avg_direction"].to_numpy(),
        df["dissent_rate"].to_numpy() * 100,
        s=df["tenure_years"].to_numpy() * 10,
        c=ideology_colors(df["avg_direction"].to_list()),
        alpha=0.7,
        edgecolors="black",
        linewidths=0.5,
    )
    for row in df.iter_rows(named=True):
        ax.annotate(
            row["voter_name"],
            (row["avg_direction"], row["dissent_rate"] * 100),
            fontsize=7,
            xytext=(4, 4),
            textcoords="offset points",
        )
    ax.axvline(DIRECTION_MIDPOINT, linestyle="--", color="gray", alpha=0.5)
    ax.set_xlabel("Average Direction (1 = Conservative, 2 = Liberal)")
    ax.set_ylabel("Dissent Rate (%)")
    ax.set_title("Justice Ideology and Dissent")
    fig.tight_layout()
    save_fig(fig, out_dir / "justice_ideology_scatter.png")


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    data_file = resolve_data_file(args.release, args.data_file)

    with RunContext(
        dataset=args.release,
        analysis_name="justices",
        params=vars(args),
        primer=JUSTICES_PRIMER,
    ) as ctx:
        print(f"Supreme Court Justice Profiles — Release {args.release}")
        print(f"Data:   {data_file}")
        print(f"Output: {ctx.run_dir}")

        print_header("PHASE 1: LOADING RECORDS")
        store = load_votes(data_file)

        print_header("PHASE 2: JUSTICE STATISTICS")
        stats = compute_justice_stats(store)
        yearly = compute_justice_yearly_patterns(store, args.sparse_year_min_votes)
        print(f"  Justices: {stats.height}")
        n_imputed = int(yearly["direction_imputed"].sum())
        if n_imputed:
            print(f"  Sparse terms with imputed direction: {n_imputed}")
        stats.write_parquet(ctx.data_dir / "justice_stats.parquet")
        yearly.write_parquet(ctx.data_dir / "justice_yearly.parquet")
        print("  Saved: justice_stats.parquet")
        print("  Saved: justice_yearly.parquet")
        save_csvs(ctx.run_dir, {"justices": stats, "justice_yearly": yearly})

        print(f"\n  Top swing justices ({args.min_tenure}+ years):")
        top = top_swing_justices(stats, min_tenure=args.min_tenure)
        for i, row in enumerate(top.iter_rows(named=True), 1):
            print(f"    {i}. {row['voter_name']} ({row['swing_index']:.3f})")

        print_header("GENERATING PLOTS")
        plot_swing_ranking(stats, ctx.plots_dir, args.min_tenure)
        plot_ideology_scatter(stats, ctx.plots_dir)

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
