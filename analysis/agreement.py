"""
Supreme Court — Pairwise Agreement (Phase 1)

Enumerates, for every case, every unordered pair of participating justices and
records whether they cast the identical vote code. Aggregates the per-case
observations into lifetime and per-decade agreement rates.

Usage:
  uv run python analysis/agreement.py [--release 2024_01] [--data-file PATH]
      [--start 1946] [--end 2023]

Outputs (in results/<dataset>/agreement/<date>/):
  - data/:   Parquet files (per-case pair observations, pairwise aggregates)
  - plots/:  PNG visualizations (agreement distribution)
  - filtering_manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import polars as pl

from court_votes.errors import NoDataError
from court_votes.models import PAIR_OBSERVATION_COLUMNS, PAIRWISE_COLUMNS
from court_votes.output import save_csvs
from court_votes.records import VoteRecordStore, load_votes
from court_votes.release import CURRENT_RELEASE, SCDBRelease

try:
    from analysis.run_context import RunContext
except ModuleNotFoundError:
    from run_context import RunContext

# ── Primer ───────────────────────────────────────────────────────────────────

AGREEMENT_PRIMER = """\
# Pairwise Agreement

## Purpose

Measures how often each pair of justices casts the identical vote. Every
downstream phase (polarization, clustering, network) starts from these tables.

## Method

For each case, every unordered pair of justices with a recorded vote is
enumerated once (voter_a < voter_b in lexicographic order, so no pair is
counted twice and no justice is paired with itself). A pair agrees when the
vote codes are literally equal: a regular concurrence (3) and a majority vote
(1) are different codes and count as disagreement.

Justices without a vote code in a case (non-participation) are left out of
that case only. Cases with fewer than two participating justices produce no
observations and are listed in `insufficient_cases.parquet`.

## Outputs

| File | Description |
|------|-------------|
| `pair_observations.parquet` | One row per (case, pair): agreement 1.0 / 0.0 |
| `pairwise_agreement.parquet` | Lifetime agreement per pair |
| `pairwise_agreement_decade.parquet` | Agreement per pair per decade |
| `insufficient_cases.parquet` | Cases skipped for < 2 participating justices |

## Caveats

- Agreement rates for pairs who shared few cases are noisy; `cases_compared`
  is kept alongside every rate so consumers can filter.
- Pairs that never sat together are absent, not zero.
"""

# ── Constants ────────────────────────────────────────────────────────────────

TOP_PAIRS_N = 5
DECADE_WIDTH = 10


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Supreme Court Pairwise Agreement")
    parser.add_argument("--release", default=CURRENT_RELEASE)
    parser.add_argument("--data-file", default=None, help="Override vote CSV/parquet path")
    parser.add_argument("--start", type=int, default=None, help="First term to include")
    parser.add_argument("--end", type=int, default=None, help="Last term to include")
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


def resolve_data_file(release: str, data_file: str | None) -> Path:
    """Vote file for a run: explicit override, else the release's extracted CSV."""
    if data_file:
        return Path(data_file)
    return SCDBRelease.from_string(release).csv_path


def _names_frame(names: dict[str, str]) -> pl.DataFrame:
    return pl.DataFrame(
        {"voter_id": list(names.keys()), "voter_name": list(names.values())},
        schema={"voter_id": pl.Utf8, "voter_name": pl.Utf8},
    )


# ── Phase 1: Per-Case Pair Observations ──────────────────────────────────────


def compute_per_case_pair_agreement(
    store: VoteRecordStore,
    period_range: tuple[int | None, int | None] | None = None,
) -> pl.DataFrame:
    """Enumerate every unordered justice pair within every case.

    Only justices with a non-null vote code take part; a missing vote removes
    the justice from that case's pairs and nothing else. Agreement is exact
    vote-code equality (1.0 / 0.0). If a grouping key has several
    sub-observations they are merged into their mean rate.

    Returns DataFrame with: case_id, period, voter_a, voter_b, agreement,
    sorted by (period, case_id, voter_a, voter_b).
    """
    if period_range is not None:
        store = store.filter_periods(*period_range)

    votes = store.qualifying().select("case_id", "period", "voter_id", "vote_code")
    left = votes.rename({"voter_id": "voter_a", "vote_code": "vote_code_a"})
    right = votes.select(
        "case_id",
        "period",
        pl.col("voter_id").alias("voter_b"),
        pl.col("vote_code").alias("vote_code_b"),
    )

    pairs = (
        left.join(right, on=["case_id", "period"], how="inner")
        .filter(pl.col("voter_a") < pl.col("voter_b"))
        .with_columns(
            (pl.col("vote_code_a") == pl.col("vote_code_b")).cast(pl.Float64).alias("agreement")
        )
        .group_by("case_id", "period", "voter_a", "voter_b")
        .agg(pl.col("agreement").mean())
        .sort("period", "case_id", "voter_a", "voter_b")
    )
    return pairs.select(PAIR_OBSERVATION_COLUMNS)


def find_insufficient_cases(store: VoteRecordStore) -> pl.DataFrame:
    """Cases with fewer than two participating justices (no pair observations).

    Returns DataFrame with: case_id, period, n_records, n_qualifying.
    """
    return (
        store.frame.group_by("case_id", "period")
        .agg(
            pl.len().cast(pl.Int64).alias("n_records"),
            pl.col("vote_code").is_not_null().sum().cast(pl.Int64).alias("n_qualifying"),
        )
        .filter(pl.col("n_qualifying") < 2)
        .sort("period", "case_id")
    )


# ── Phase 2: Pairwise Aggregation ────────────────────────────────────────────


def aggregate_pairs(
    observations: pl.DataFrame,
    names: dict[str, str] | None = None,
    by: list[str] | None = None,
) -> pl.DataFrame:
    """Collapse per-case observations into one agreement rate per pair.

    ``by`` adds grouping keys (e.g. ["decade"]) in front of the pair key.
    Pairs without observations never appear.

    Returns DataFrame with: [by...], voter_a, voter_b, name_a, name_b,
    times_agreed, cases_compared, agreement_rate.
    """
    keys = [*(by or []), "voter_a", "voter_b"]
    agg = (
        observations.group_by(keys)
        .agg(
            pl.col("agreement").sum().alias("times_agreed"),
            pl.len().cast(pl.Int64).alias("cases_compared"),
        )
        .with_columns((pl.col("times_agreed") / pl.col("cases_compared")).alias("agreement_rate"))
    )

    lookup = _names_frame(names or {})
    lookup_a = lookup.rename({"voter_id": "voter_a", "voter_name": "name_a"})
    lookup_b = lookup.rename({"voter_id": "voter_b", "voter_name": "name_b"})
    agg = (
        agg.join(lookup_a, on="voter_a", how="left")
        .join(lookup_b, on="voter_b", how="left")
        .with_columns(
            pl.col("name_a").fill_null(pl.col("voter_a")),
            pl.col("name_b").fill_null(pl.col("voter_b")),
        )
    )
    return agg.select(*(by or []), *PAIRWISE_COLUMNS).sort(keys)


def compute_pairwise_agreement(
    store: VoteRecordStore,
    period_range: tuple[int | None, int | None] | None = None,
) -> pl.DataFrame:
    """Lifetime (or windowed) agreement rate for every pair that shared a case.

    agreement_rate = times_agreed / cases_compared. The result depends only on
    the set of records, not their order.
    """
    observations = compute_per_case_pair_agreement(store, period_range)
    return aggregate_pairs(observations, store.names())


def compute_agreement_by_period(store: VoteRecordStore, start: int, end: int) -> pl.DataFrame:
    """Agreement restricted to terms start..end, tagged with the window bounds."""
    pairwise = compute_pairwise_agreement(store, (start, end))
    return pairwise.with_columns(
        pl.lit(start, dtype=pl.Int64).alias("period_start"),
        pl.lit(end, dtype=pl.Int64).alias("period_end"),
    )


def compute_agreement_by_decade(
    store: VoteRecordStore,
    observations: pl.DataFrame | None = None,
) -> pl.DataFrame:
    """Agreement per pair per decade, in one grouped pass."""
    if observations is None:
        observations = compute_per_case_pair_agreement(store)
    with_decade = observations.with_columns(
        ((pl.col("period") // DECADE_WIDTH) * DECADE_WIDTH).alias("decade")
    )
    return aggregate_pairs(with_decade, store.names(), by=["decade"])


def agreement_rate(aggregates: pl.DataFrame, a: str, b: str) -> float:
    """Symmetric lookup of one pair's agreement rate.

    A justice always agrees with themself (1.0). Raises NoDataError when the
    pair never shared a case.
    """
    a, b = str(a), str(b)
    if a == b:
        return 1.0
    lo, hi = sorted((a, b))
    row = aggregates.filter((pl.col("voter_a") == lo) & (pl.col("voter_b") == hi))
    if row.height == 0:
        raise NoDataError(f"No shared cases for pair ({lo}, {hi})")
    return float(row["agreement_rate"][0])


def print_extreme_pairs(pairwise: pl.DataFrame, min_cases: int = 100, n: int = TOP_PAIRS_N) -> None:
    """Print the most and least aligned pairs among those with enough shared cases."""
    eligible = pairwise.filter(pl.col("cases_compared") >= min_cases)
    if eligible.height == 0:
        print(f"  No pairs with >= {min_cases} shared cases")
        return
    ranked = eligible.sort("agreement_rate", "voter_a", "voter_b", descending=[True, False, False])
    print(f"\n  Most aligned pairs (>= {min_cases} shared cases):")
    for row in ranked.head(n).iter_rows(named=True):
        print(
            f"    {row['name_a']:18s} {row['name_b']:18s} "
            f"{row['agreement_rate']:.3f}  ({row['cases_compared']} cases)"
        )
    print(f"\n  Least aligned pairs (>= {min_cases} shared cases):")
    for row in ranked.tail(n).reverse().iter_rows(named=True):
        print(
            f"    {row['name_a']:18s} {row['name_b']:18s} "
            f"{row['agreement_rate']:.3f}  ({row['cases_compared']} cases)"
        )


# ── Phase 3: Plots ───────────────────────────────────────────────────────────


def plot_agreement_distribution(pairwise: pl.DataFrame, out_dir: Path) -> None:
    """Histogram of lifetime pair agreement rates, weighted by shared cases."""
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.hist(
        pairwise["agreement_rate"].to_numpy(),
        bins=40,
        range=(0.0, 1.0),
        weights=pairwise["cases_compared"].to_numpy(),
        color="#377EB8",
        alpha=0.8,
    )
    ax.set_xlabel("Agreement rate")
    ax.set_ylabel("Shared cases")
    ax.set_title("Distribution of Pairwise Agreement (weighted by shared cases)")
    fig.tight_layout()
    save_fig(fig, out_dir / "agreement_distribution.png")


def save_filtering_manifest(manifest: dict, out_dir: Path) -> None:
    path = out_dir / "filtering_manifest.json"
    with open(path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)
    print(f"  Saved: {path.name}")


# ── Main ─────────────────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    data_file = resolve_data_file(args.release, args.data_file)

    with RunContext(
        dataset=args.release,
        analysis_name="agreement",
        params=vars(args),
        primer=AGREEMENT_PRIMER,
    ) as ctx:
        print(f"Supreme Court Pairwise Agreement — Release {args.release}")
        print(f"Data:   {data_file}")
        print(f"Output: {ctx.run_dir}")

        # ── Phase 1: Load records ──
        print_header("PHASE 1: LOADING RECORDS")
        store = load_votes(data_file).filter_periods(args.start, args.end)
        summary = store.summary()

        # ── Phase 2: Per-case observations ──
        print_header("PHASE 2: PER-CASE PAIR OBSERVATIONS")
        observations = compute_per_case_pair_agreement(store)
        insufficient = find_insufficient_cases(store)
        print(f"  Pair observations: {observations.height:,}")
        print(f"  Skipped cases (< 2 participating justices): {insufficient.height}")
        observations.write_parquet(ctx.data_dir / "pair_observations.parquet")
        insufficient.write_parquet(ctx.data_dir / "insufficient_cases.parquet")
        print("  Saved: pair_observations.parquet")
        print("  Saved: insufficient_cases.parquet")

        # ── Phase 3: Aggregates ──
        print_header("PHASE 3: PAIRWISE AGGREGATES")
        pairwise = aggregate_pairs(observations, store.names())
        by_decade = compute_agreement_by_decade(store, observations)
        print(f"  Pairs: {pairwise.height}")
        print(f"  Pair-decades: {by_decade.height}")
        print_extreme_pairs(pairwise)
        pairwise.write_parquet(ctx.data_dir / "pairwise_agreement.parquet")
        by_decade.write_parquet(ctx.data_dir / "pairwise_agreement_decade.parquet")
        print("  Saved: pairwise_agreement.parquet")
        print("  Saved: pairwise_agreement_decade.parquet")
        save_csvs(ctx.run_dir, {"pairwise": pairwise})

        print_header("GENERATING PLOTS")
        if pairwise.height > 0:
            plot_agreement_distribution(pairwise, ctx.plots_dir)

        print_header("FILTERING MANIFEST")
        save_filtering_manifest(
            {
                "data_file": str(data_file),
                "period_window": {"start": args.start, "end": args.end},
                "records": summary,
                "n_observations": observations.height,
                "n_pairs": pairwise.height,
                "insufficient_cases": insufficient["case_id"].to_list(),
            },
            ctx.run_dir,
        )

        print_header("DONE")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
