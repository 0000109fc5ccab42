"""
Supreme Court — Polarization Indices (Phase 2)

Pools every per-case pair observation within a term and summarizes its
distribution. The variance of that pool is the Agreement Variance Index
(AVI): high when justices split into blocs that almost always or almost never
agree, low under broad consensus. Supplements the AVI with case-level yearly
metrics (5-4 share, unanimity, dissent rate, ideological direction).

Usage:
  uv run python analysis/polarization.py [--release 2024_01] [--data-file PATH]
      [--agreement-dir DIR] [--split-period 2000]

Outputs (in results/<dataset>/polarization/<date>/):
  - data/:   polarization_metrics.parquet (AVI joined with case metrics),
             agreement_trend.parquet
  - plots/:  PNG visualizations (AVI trend, ideological swing, close decisions)
  - polarization_summary.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import polars as pl

from court_votes.config import DIRECTION_MIDPOINT, DISSENT_CODES
from court_votes.models import POLARIZATION_COLUMNS
from court_votes.output import save_csvs
from court_votes.records import VoteRecordStore, load_votes
from court_votes.release import CURRENT_RELEASE

try:
    from analysis.run_context import RunContext, upstream_dir
except ModuleNotFoundError:
    from run_context import RunContext, upstream_dir  # type: ignore[no-redef]

try:
    from analysis.agreement import compute_per_case_pair_agreement, resolve_data_file
except ModuleNotFoundError:
    from agreement import compute_per_case_pair_agreement, resolve_data_file  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

POLARIZATION_PRIMER = """\
# Polarization Indices

## Purpose

Tracks division on the Court term by term.

## Method

### Agreement Variance Index (AVI)

Every (case, pair) observation in a term is pooled without first collapsing to
one value per pair: a pair that sat together in 50 cases contributes 50 data
points. The sample variance of the pool is the AVI.

- Many pairs near 0% and many near 100% agreement -> high variance (blocs)
- Most pairs agreeing most of the time -> low variance (consensus)

Mean, median, min and max of the same pool are reported alongside.

### Missing vs. zero

- A term with no valid pair has `variance_status = "no_pairs"` and null
  statistics.
- A term with exactly one observation has
  `variance_status = "single_observation"` and null variance. A single
  observation carries no spread information, so it is never reported as 0.
  A term where every observation is identical has a true variance of 0.

### Case-level metrics

Per term: distinct cases, mean ideological direction (1 = conservative,
2 = liberal), share of 5-4 decisions, share of unanimous decisions, and the
fraction of votes that were dissents.

## Interpretation Guide

- Compare AVI across eras with `polarization_summary.json` (pre/post split).
- A rising AVI with a flat mean agreement signals sorting into blocs rather
  than more disagreement overall.
"""

# ── Constants ────────────────────────────────────────────────────────────────

SPLIT_PERIOD = 2000
TOP_PERIODS_N = 5
SMOOTH_WINDOW = 5


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Polarization Indices")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument("--data-file", default=None, help="Override vote CSV/parquet path")
    parser.add_argument(
        "--agreement-dir", default=None, help="Override agreement results directory"
    )
    parser.add_argument(
        "--split-period",
        type=int,
        default=SPLIT_PERIOD,
        help=f"First term of the 'late' era in the summary (default: {SPLIT_PERIOD})",
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


# ── Phase 1: Agreement Variance Index ────────────────────────────────────────


def compute_polarization_by_period(
    observations: pl.DataFrame,
    periods: list[int] | None = None,
) -> pl.DataFrame:
    """Distribution of per-case pair agreement within each period.

    ``observations`` is the per-case pair table (case_id, period, voter_a,
    voter_b, agreement). Every row counts; nothing is collapsed per pair.
    ``periods`` lists periods that must appear even without observations.

    Returns DataFrame with: period, variance, mean, median, min, max, range,
    pair_count, variance_status ("ok", "single_observation", "no_pairs").
    """
    stats = (
        observations.group_by("period")
        .agg(
            pl.col("agreement").var(ddof=1).alias("variance"),
            pl.col("agreement").mean().alias("mean"),
            pl.col("agreement").median().alias("median"),
            pl.col("agreement").min().alias("min"),
            pl.col("agreement").max().alias("max"),
            pl.len().cast(pl.Int64).alias("pair_count"),
        )
        .with_columns(
            pl.when(pl.col("pair_count") < 2)
            .then(None)
            .otherwise(pl.col("variance"))
            .alias("variance"),
            pl.when(pl.col("pair_count") < 2)
            .then(pl.lit("single_observation"))
            .otherwise(pl.lit("ok"))
            .alias("variance_status"),
            (pl.col("max") - pl.col("min")).alias("range"),
        )
    )

    if periods is not None:
        frame = pl.DataFrame({"period": sorted(set(periods))}, schema={"period": pl.Int64})
        stats = frame.join(stats, on="period", how="full", coalesce=True).with_columns(
            pl.col("pair_count").fill_null(0),
            pl.col("variance_status").fill_null("no_pairs"),
        )

    return stats.select(POLARIZATION_COLUMNS).sort("period")


def read_agreement_window(agreement_dir: Path) -> tuple[int | None, int | None]:
    """(start, end) term bounds the agreement phase ran with; open when unrecorded."""
    path = agreement_dir / "filtering_manifest.json"
    if not path.exists():
        return None, None
    with open(path) as f:
        manifest = json.load(f)
    window = manifest.get("period_window") or {}
    return window.get("start"), window.get("end")


# ── Phase 2: Case-Level Metrics ──────────────────────────────────────────────


def _case_table(store: VoteRecordStore) -> pl.DataFrame:
    """One row per case with its vote tallies."""
    return store.frame.group_by("case_id", "period").agg(
        pl.col("maj_votes").drop_nulls().first(),
        pl.col("min_votes").drop_nulls().first(),
    )


def compute_case_metrics(store: VoteRecordStore) -> pl.DataFrame:
    """Per-period case-level metrics.

    Returns DataFrame with: period, n_cases, avg_direction, pct_5_4,
    pct_unanimous, dissent_rate. Percentages are 0-100; dissent_rate is the
    fraction of recorded votes that were dissents. Tally-based columns are
    null when the source carried no tallies.
    """
    cases = (
        _case_table(store)
        .with_columns(
            ((pl.col("maj_votes") == 5) & (pl.col("min_votes") == 4))
            .cast(pl.Float64)
            .alias("is_5_4"),
            (pl.col("min_votes") == 0).cast(pl.Float64).alias("is_unanimous"),
        )
        .group_by("period")
        .agg(
            pl.len().cast(pl.Int64).alias("n_cases"),
            (pl.col("is_5_4").mean() * 100).alias("pct_5_4"),
            (pl.col("is_unanimous").mean() * 100).alias("pct_unanimous"),
        )
    )

    votes = store.frame.group_by("period").agg(
        pl.col("direction").mean().alias("avg_direction"),
        pl.col("vote_code")
        .drop_nulls()
        .is_in(list(DISSENT_CODES))
        .cast(pl.Float64)
        .mean()
        .alias("dissent_rate"),
    )

    return (
        cases.join(votes, on="period", how="left")
        .select("period", "n_cases", "avg_direction", "pct_5_4", "pct_unanimous", "dissent_rate")
        .sort("period")
    )


def compute_ideological_direction(store: VoteRecordStore) -> pl.DataFrame:
    """Yearly mean and spread of vote direction (unknown directions ignored)."""
    return (
        store.frame.group_by("period")
        .agg(
            pl.col("direction").mean().alias("avg_direction"),
            pl.col("direction").std().alias("sd_direction"),
            pl.col("case_id").n_unique().cast(pl.Int64).alias("n_cases"),
        )
        .sort("period")
    )


def compute_agreement_trend(store: VoteRecordStore) -> pl.DataFrame:
    """Yearly mean of the case-level agreement percentage maj / (maj + min).

    Unanimous cases count as 100%. Cases without tallies are ignored.
    """
    cases = _case_table(store).with_columns(
        pl.when(pl.col("min_votes") == 0)
        .then(pl.lit(100.0))
        .otherwise(
            pl.col("maj_votes") / (pl.col("maj_votes") + pl.col("min_votes")) * 100
        )
        .alias("agreement_percentage")
    )
    return (
        cases.group_by("period")
        .agg(
            pl.col("agreement_percentage").mean().alias("avg_agree_perc"),
            pl.col("agreement_percentage").std().alias("sd_agree_perc"),
            pl.len().cast(pl.Int64).alias("n_cases"),
        )
        .sort("period")
    )


# ── Phase 3: Summary ─────────────────────────────────────────────────────────


def summarize_polarization(
    polarization: pl.DataFrame,
    split_period: int = SPLIT_PERIOD,
    top_n: int = TOP_PERIODS_N,
) -> dict:
    """Era comparison and most/least polarized periods.

    Periods with null variance are excluded from every variance statistic.
    """
    defined = polarization.filter(pl.col("variance").is_not_null())
    early = defined.filter(pl.col("period") < split_period)["variance"]
    late = defined.filter(pl.col("period") >= split_period)["variance"]

    early_mean = float(early.mean()) if early.len() > 0 else None
    late_mean = float(late.mean()) if late.len() > 0 else None
    pct_change = None
    if early_mean and late_mean is not None:
        pct_change = (late_mean - early_mean) / early_mean * 100

    ranked = defined.sort("variance", "period", descending=[True, False])
    most = ranked.head(top_n)
    least = defined.sort("variance", "period").head(top_n)

    mean_agreement = polarization["mean"].mean()

    return {
        "first_period": polarization["period"].min(),
        "last_period": polarization["period"].max(),
        "n_periods": polarization.height,
        "n_periods_undefined": polarization.height - defined.height,
        "mean_agreement": float(mean_agreement) if mean_agreement is not None else None,
        "mean_variance": float(defined["variance"].mean()) if defined.height > 0 else None,
        "split_period": split_period,
        "early_mean_variance": early_mean,
        "late_mean_variance": late_mean,
        "pct_change": pct_change,
        "most_polarized": list(zip(most["period"].to_list(), most["variance"].to_list())),
        "least_polarized": list(zip(least["period"].to_list(), least["variance"].to_list())),
    }


def print_polarization_summary(summary: dict) -> None:
    print(f"  Periods covered: {summary['first_period']} - {summary['last_period']}")
    if summary["n_periods_undefined"]:
        print(f"  Periods with undefined variance: {summary['n_periods_undefined']}")
    if summary["mean_agreement"] is not None:
        print(f"  Mean agreement: {summary['mean_agreement'] * 100:.1f}%")
    if summary["mean_variance"] is not None:
        print(f"  Mean variance:  {summary['mean_variance']:.4f}")
    split = summary["split_period"]
    if summary["early_mean_variance"] is not None:
        print(f"  Mean AVI (pre-{split}): {summary['early_mean_variance']:.4f}")
    if summary["late_mean_variance"] is not None:
        print(f"  Mean AVI ({split}+):    {summary['late_mean_variance']:.4f}")
    if summary["pct_change"] is not None:
        print(f"  Change: {summary['pct_change']:+.1f}%")
    print("\n  Most polarized periods:")
    for period, variance in summary["most_polarized"]:
        print(f"    {period}: variance = {variance:.4f}")
    print("\n  Least polarized periods:")
    for period, variance in summary["least_polarized"]:
        print(f"    {period}: variance = {variance:.4f}")


# ── Phase 4: Plots ───────────────────────────────────────────────────────────


def plot_polarization_trend(polarization: pl.DataFrame, out_dir: Path) -> None:
    """AVI by period with a centered rolling mean. Undefined periods are gaps."""
    df = polarization.sort("period").with_columns(
        pl.col("variance")
        .rolling_mean(window_size=SMOOTH_WINDOW, min_samples=1, center=True)
        .alias("smoothed")
    )
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(df["period"], df["variance"], color="#E41A1C", alpha=0.5, marker="o", markersize=3)
    ax.plot(df["period"], df["smoothed"], color="#377EB8", linewidth=2, label="Rolling mean")
    ax.set_ylabel("Variance in pairwise agreement")
    ax.set_title("Polarization on the Supreme Court (Agreement Variance Index)")
    ax.legend(loc="best")
    fig.tight_layout()
    save_fig(fig, out_dir / "polarization_trend.png")


def plot_ideological_swing(case_metrics: pl.DataFrame, out_dir: Path) -> None:
    """Mean vote direction by period (1 = conservative, 2 = liberal)."""
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(
        case_metrics["period"], case_metrics["avg_direction"], color="#333333", marker="o", markersize=3
    )
    ax.axhline(DIRECTION_MIDPOINT, linestyle="--", color="gray")
    ax.set_ylabel("Average ideological direction")
    ax.set_title("Ideological Direction of Supreme Court Votes")
    fig.tight_layout()
    save_fig(fig, out_dir / "ideological_swing.png")


def plot_close_decisions(case_metrics: pl.DataFrame, out_dir: Path) -> None:
    """5-4 and unanimous shares by period."""
    if case_metrics["pct_5_4"].null_count() == case_metrics.height:
        print("  Skipping close-decision plot: no vote tallies")
        return
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)
    ax1.bar(case_metrics["period"], case_metrics["pct_5_4"].fill_null(0), color="#E41A1C", alpha=0.7)
    ax1.set_ylabel("% of cases (5-4)")
    ax1.set_title("5-4 Decisions")
    ax2.bar(case_metrics["period"], case_metrics["pct_unanimous"].fill_null(0), color="#4DAF4A", alpha=0.7)
    ax2.set_ylabel("% unanimous")
    ax2.set_title("Unanimous Decisions")
    fig.tight_layout()
    save_fig(fig, out_dir / "close_decisions.png")


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    data_file = resolve_data_file(args.release, args.data_file)
    agreement_dir = upstream_dir(args.release, "agreement", args.agreement_dir)

    with RunContext(
        dataset=args.release,
        analysis_name="polarization",
        params=vars(args),
        primer=POLARIZATION_PRIMER,
    ) as ctx:
        print(f"Supreme Court Polarization Indices — Release {args.release}")
        print(f"Data:      {data_file}")
        print(f"Agreement: {agreement_dir}")
        print(f"Output:    {ctx.run_dir}")

        print_header("PHASE 1: LOADING DATA")
        store = load_votes(data_file)
        obs_path = agreement_dir / "data" / "pair_observations.parquet"
        if obs_path.exists():
            observations = pl.read_parquet(obs_path)
            print(f"  Pair observations: {observations.height:,} (from agreement phase)")
            start, end = read_agreement_window(agreement_dir)
            if start is not None or end is not None:
                store = store.filter_periods(start, end)
                print(f"  Term window: start={start}, end={end} (from agreement phase)")
        else:
            print("  No agreement phase output; computing pair observations")
            observations = compute_per_case_pair_agreement(store)

        print_header("PHASE 2: AGREEMENT VARIANCE INDEX")
        polarization = compute_polarization_by_period(observations, store.periods())
        status_counts = polarization.group_by("variance_status").agg(pl.len()).sort("variance_status")
        for row in status_counts.iter_rows(named=True):
            print(f"    {row['variance_status']:14s} {row['len']}")

        print_header("PHASE 3: CASE-LEVEL METRICS")
        case_metrics = compute_case_metrics(store)
        metrics = polarization.join(case_metrics, on="period", how="left")
        metrics.write_parquet(ctx.data_dir / "polarization_metrics.parquet")
        compute_agreement_trend(store).write_parquet(ctx.data_dir / "agreement_trend.parquet")
        print("  Saved: polarization_metrics.parquet")
        print("  Saved: agreement_trend.parquet")
        save_csvs(ctx.run_dir, {"polarization": metrics})

        print_header("PHASE 4: SUMMARY")
        summary = summarize_polarization(polarization, split_period=args.split_period)
        print_polarization_summary(summary)
        with open(ctx.run_dir / "polarization_summary.json", "w") as f:
            json.dump(summary, f, indent=2, default=str)

        print_header("GENERATING PLOTS")
        plot_polarization_trend(polarization, ctx.plots_dir)
        plot_ideological_swing(case_metrics, ctx.plots_dir)
        plot_close_decisions(case_metrics, ctx.plots_dir)

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
