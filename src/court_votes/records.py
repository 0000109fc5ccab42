"""In-memory store of justice-level vote records.

Loads a justice-centered table (an SCDB CSV release, a parquet file, or a
polars DataFrame), maps its columns onto the canonical schema in
``court_votes.models.RECORD_SCHEMA``, and resolves missing-data encodings at
ingestion:

  - direction codes outside DIRECTION_CODES (SCDB's 3 = unspecifiable) -> null
  - majority codes outside MAJORITY_CODES -> null
  - blank vote codes -> null (the justice did not participate)

Downstream phases never see a magic value standing in for "unknown".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path

import polars as pl

from court_votes.config import DATE_FORMAT, DIRECTION_CODES, MAJORITY_CODES, SCDB_COLUMNS
from court_votes.errors import InvalidParameterError, SchemaError
from court_votes.models import RECORD_SCHEMA, REQUIRED_COLUMNS, VoteRecord

_POLARS_TYPES = {
    "Utf8": pl.Utf8,
    "Int64": pl.Int64,
    "Float64": pl.Float64,
    "Boolean": pl.Boolean,
}

_INT_TYPES = (pl.Int8, pl.Int16, pl.Int32, pl.Int64, pl.UInt8, pl.UInt16, pl.UInt32, pl.UInt64)
_FLOAT_TYPES = (pl.Float32, pl.Float64)


@dataclass(frozen=True)
class VoteRecordStore:
    """Immutable table of one row per (case, voter).

    Attributes:
        frame: Canonical records, sorted by (period, case_id, voter_id).
        rejected: Rows dropped at load for lacking case_id, voter_id or period.
        duplicates_collapsed: Exact duplicate rows collapsed at load.
    """

    frame: pl.DataFrame
    rejected: int = 0
    duplicates_collapsed: int = 0

    @classmethod
    def from_records(cls, records: list[VoteRecord]) -> VoteRecordStore:
        """Build a store from VoteRecord objects (validated like any other source)."""
        schema = {name: _POLARS_TYPES[dtype] for name, dtype in RECORD_SCHEMA.items()}
        df = pl.DataFrame([asdict(r) for r in records], schema=schema)
        return load_votes(df, column_map={}, verbose=False)

    @property
    def height(self) -> int:
        return self.frame.height

    def qualifying(self) -> pl.DataFrame:
        """Records with a non-null vote code (the rows that can form pairs)."""
        return self.frame.filter(pl.col("vote_code").is_not_null())

    def voters(self) -> list[str]:
        return sorted(self.frame["voter_id"].unique().to_list())

    def periods(self) -> list[int]:
        return sorted(self.frame["period"].unique().to_list())

    def names(self) -> dict[str, str]:
        """voter_id -> display name."""
        named = self.frame.group_by("voter_id").agg(pl.col("voter_name").first())
        return dict(zip(named["voter_id"].to_list(), named["voter_name"].to_list()))

    def filter_periods(self, start: int | None = None, end: int | None = None) -> VoteRecordStore:
        """Restrict to start <= period <= end (either bound may be open)."""
        if start is not None and end is not None and start > end:
            raise InvalidParameterError(f"Period range start={start} is after end={end}")
        df = self.frame
        if start is not None:
            df = df.filter(pl.col("period") >= start)
        if end is not None:
            df = df.filter(pl.col("period") <= end)
        return VoteRecordStore(df, self.rejected, self.duplicates_collapsed)

    def filter_voters(self, voters) -> VoteRecordStore:
        """Restrict to records whose voter_id is in ``voters``."""
        wanted = [str(v) for v in voters]
        df = self.frame.filter(pl.col("voter_id").is_in(wanted))
        return VoteRecordStore(df, self.rejected, self.duplicates_collapsed)

    def active_voters(self, start: int | None = None, end: int | None = None) -> list[str]:
        """Voters with at least one record in [start, end]."""
        return self.filter_periods(start, end).voters()

    def current_voters(self) -> list[str]:
        """Voters who sat in the most recent period (the current court)."""
        if self.frame.height == 0:
            return []
        last = self.frame["period"].max()
        return self.filter_periods(last, last).voters()

    def summary(self) -> dict:
        """High-level counts for the run log."""
        periods = self.periods()
        return {
            "records": self.frame.height,
            "cases": self.frame["case_id"].n_unique(),
            "voters": self.frame["voter_id"].n_unique(),
            "first_period": periods[0] if periods else None,
            "last_period": periods[-1] if periods else None,
            "missing_vote_code": self.frame["vote_code"].null_count(),
            "missing_direction": self.frame["direction"].null_count(),
            "rejected": self.rejected,
            "duplicates_collapsed": self.duplicates_collapsed,
        }


# ── Loading ──────────────────────────────────────────────────────────────────


def _read_source(source: str | Path | pl.DataFrame) -> pl.DataFrame:
    if isinstance(source, pl.DataFrame):
        return source
    path = Path(source)
    if path.suffix == ".parquet":
        return pl.read_parquet(path)
    return pl.read_csv(path, infer_schema_length=20000, encoding="utf8-lossy")


def _as_code(name: str, dtype: pl.DataType) -> pl.Expr:
    """Cast an identifier/categorical column to Utf8 without float artifacts ("1.0")."""
    col = pl.col(name)
    if dtype in _FLOAT_TYPES:
        col = col.cast(pl.Int64, strict=False)
    col = col.cast(pl.Utf8).str.strip_chars()
    return pl.when(col == "").then(None).otherwise(col).alias(name)


def _as_int(df: pl.DataFrame, name: str) -> pl.Series:
    """Cast a column to Int64, failing with SchemaError when values are not integers."""
    series = df[name]
    if series.dtype == pl.Utf8:
        stripped = pl.col(name).str.strip_chars()
        series = df.select(
            pl.when(stripped == "").then(None).otherwise(stripped).alias(name)
        ).to_series()
    try:
        return series.cast(pl.Int64, strict=True)
    except (pl.exceptions.InvalidOperationError, pl.exceptions.ComputeError) as e:
        raise SchemaError(
            f"Column '{name}' must hold integer values (found dtype {df[name].dtype})"
        ) from e


def _derive_period(df: pl.DataFrame, date_column: str, date_format: str) -> pl.DataFrame:
    if date_column not in df.columns:
        raise SchemaError(f"Date column '{date_column}' not found (available: {df.columns})")
    col = pl.col(date_column)
    if df[date_column].dtype == pl.Utf8:
        col = col.str.to_date(date_format, strict=False)
    return df.with_columns(col.dt.year().cast(pl.Int64).alias("period"))


def load_votes(
    source: str | Path | pl.DataFrame,
    column_map: dict[str, str] | None = None,
    date_column: str | None = None,
    date_format: str = DATE_FORMAT,
    direction_codes: tuple = DIRECTION_CODES,
    majority_codes: dict = MAJORITY_CODES,
    verbose: bool = True,
) -> VoteRecordStore:
    """Load a justice-centered vote table into a VoteRecordStore.

    ``column_map`` maps source column names to canonical names (default: SCDB
    names). Columns already carrying canonical names pass through. When the
    source has no period column, ``date_column`` is parsed with
    ``date_format`` and its year becomes the period.

    Raises SchemaError when a required column is missing or has the wrong
    type, when one voter has two conflicting records in one case, or when a
    case has records in more than one period.
    """
    df = _read_source(source)
    mapping = SCDB_COLUMNS if column_map is None else column_map
    renames = {
        src: dst
        for src, dst in mapping.items()
        if src in df.columns and src != dst and dst not in df.columns
    }
    df = df.rename(renames)

    if "period" not in df.columns and date_column is not None:
        df = _derive_period(df, date_column, date_format)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(
            f"Missing required column(s): {', '.join(missing)} (available: {', '.join(df.columns)})"
        )

    period = _as_int(df, "period")
    df = df.with_columns(
        period,
        _as_code("case_id", df["case_id"].dtype),
        _as_code("voter_id", df["voter_id"].dtype),
        _as_code("vote_code", df["vote_code"].dtype),
    )

    # voter_name falls back to the id
    if "voter_name" in df.columns:
        name = _as_code("voter_name", df["voter_name"].dtype)
        df = df.with_columns(name).with_columns(pl.col("voter_name").fill_null(pl.col("voter_id")))
    else:
        df = df.with_columns(pl.col("voter_id").alias("voter_name"))

    if "direction" in df.columns:
        direction = pl.col("direction").cast(pl.Float64, strict=False)
        valid = [float(c) for c in direction_codes]
        df = df.with_columns(
            pl.when(direction.is_in(valid)).then(direction).otherwise(None).alias("direction")
        )
    else:
        df = df.with_columns(pl.lit(None, dtype=pl.Float64).alias("direction"))

    if "is_majority" in df.columns and df["is_majority"].dtype != pl.Boolean:
        df = df.with_columns(
            pl.col("is_majority")
            .cast(pl.Int64, strict=False)
            .replace_strict(majority_codes, default=None, return_dtype=pl.Boolean)
        )
    elif "is_majority" not in df.columns:
        df = df.with_columns(pl.lit(None, dtype=pl.Boolean).alias("is_majority"))

    for tally in ("maj_votes", "min_votes"):
        if tally in df.columns:
            df = df.with_columns(pl.col(tally).cast(pl.Int64, strict=False))
        else:
            df = df.with_columns(pl.lit(None, dtype=pl.Int64).alias(tally))

    df = df.select(list(RECORD_SCHEMA))

    # Rows without identity or period cannot be placed in any case group
    n_before = df.height
    df = df.filter(
        pl.col("case_id").is_not_null()
        & pl.col("voter_id").is_not_null()
        & pl.col("period").is_not_null()
    )
    rejected = n_before - df.height

    n_before = df.height
    df = df.unique(maintain_order=True)
    collapsed = n_before - df.height

    conflicts = (
        df.group_by("case_id", "voter_id")
        .agg(pl.len().alias("n"))
        .filter(pl.col("n") > 1)
        .sort("case_id", "voter_id")
    )
    if conflicts.height > 0:
        first = conflicts.row(0, named=True)
        raise SchemaError(
            f"{conflicts.height} (case_id, voter_id) pair(s) have conflicting records; "
            f"first: case_id={first['case_id']!r}, voter_id={first['voter_id']!r} "
            f"({first['n']} rows)"
        )

    # A case is decided in exactly one period
    split_cases = (
        df.group_by("case_id")
        .agg(pl.col("period").n_unique().alias("n_periods"), pl.col("period").unique().sort())
        .filter(pl.col("n_periods") > 1)
        .sort("case_id")
    )
    if split_cases.height > 0:
        first = split_cases.row(0, named=True)
        raise SchemaError(
            f"{split_cases.height} case(s) have records in more than one period; "
            f"first: case_id={first['case_id']!r} (periods {first['period']})"
        )

    df = df.sort("period", "case_id", "voter_id")
    store = VoteRecordStore(df, rejected=rejected, duplicates_collapsed=collapsed)

    if verbose:
        s = store.summary()
        print(
            f"  Loaded {s['records']:,} records: {s['cases']:,} cases, {s['voters']} voters, "
            f"periods {s['first_period']}-{s['last_period']}"
        )
        if rejected:
            print(f"  [WARN] Rejected {rejected} row(s) lacking case_id, voter_id or period")
        if collapsed:
            print(f"  [WARN] Collapsed {collapsed} exact duplicate row(s)")
    return store
