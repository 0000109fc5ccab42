"""CSV export for analysis result tables."""

from pathlib import Path

import polars as pl

# Flat-file name for each exportable table
TABLE_FILES = {
    "pairwise": "voting_summary.csv",
    "polarization": "polarization_metrics.csv",
    "justices": "justice_ideology_scores.csv",
    "justice_yearly": "justice_yearly_patterns.csv",
    "clusters": "cluster_assignments.csv",
    "communities": "community_assignments.csv",
    "centrality": "network_centrality.csv",
}


def save_csvs(output_dir: Path, tables: dict[str, pl.DataFrame], prefix: str = "") -> list[Path]:
    """Save result tables as CSV files. Returns the written paths.

    Known table keys get their conventional file names; anything else is
    written as ``{key}.csv``. Empty tables are skipped.
    """
    print("\n" + "=" * 60)
    print("Saving CSV files...")
    print("=" * 60)

    output_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for key, df in tables.items():
        if df.width == 0:
            print(f"  Skipped {key}: empty table")
            continue
        name = TABLE_FILES.get(key, f"{key}.csv")
        path = output_dir / f"{prefix}{name}"
        df.write_csv(path)
        written.append(path)
        print(f"  {path} ({df.height} rows)")
    return written
