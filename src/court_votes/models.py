"""Data classes for vote records."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class VoteRecord:
    """One justice's vote in one case."""
    case_id: str
    period: int
    voter_id: str
    voter_name: str = ""
    vote_code: Optional[str] = None  # None = did not participate
    direction: Optional[float] = None  # 1 = conservative, 2 = liberal, None = unknown
    is_majority: Optional[bool] = None
    maj_votes: Optional[int] = None
    min_votes: Optional[int] = None


# Canonical store schema, in column order
RECORD_SCHEMA = {
    "case_id": "Utf8",
    "period": "Int64",
    "voter_id": "Utf8",
    "voter_name": "Utf8",
    "vote_code": "Utf8",
    "direction": "Float64",
    "is_majority": "Boolean",
    "maj_votes": "Int64",
    "min_votes": "Int64",
}

REQUIRED_COLUMNS = ("case_id", "period", "voter_id", "vote_code")

PAIR_OBSERVATION_COLUMNS = ("case_id", "period", "voter_a", "voter_b", "agreement")

PAIRWISE_COLUMNS = (
    "voter_a",
    "voter_b",
    "name_a",
    "name_b",
    "times_agreed",
    "cases_compared",
    "agreement_rate",
)

POLARIZATION_COLUMNS = (
    "period",
    "variance",
    "mean",
    "median",
    "min",
    "max",
    "range",
    "pair_count",
    "variance_status",
)
