"""Reusable run context for structured analysis output.

Every analysis phase (agreement, polarization, clustering, network, ...) uses
RunContext to get:
  - Structured output directories: results/<dataset>/<analysis>/<date>/plots/ + data/
  - Automatic console log capture (run_log.txt)
  - Run metadata (run_info.json): git hash, timestamp, parameters
  - A `latest` symlink pointing to the most recent run

Usage:
    with RunContext(
        dataset="2024_01",
        analysis_name="agreement",
        params=vars(args),
        primer=AGREEMENT_PRIMER,   # Markdown primer written to results/<dataset>/agreement/README.md
    ) as ctx:
        # ctx.plots_dir, ctx.data_dir, ctx.run_dir are ready
        pairwise.write_parquet(ctx.data_dir / "pairwise_agreement.parquet")
        save_fig(fig, ctx.plots_dir / "plot.png")
"""

from __future__ import annotations

import io
import json
import re
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType


class _TeeStream:
    """Wraps a stream to duplicate output to both the original stream and a buffer.

    All print() output goes to both the console (so the user sees progress)
    and an internal StringIO buffer (captured for run_log.txt).
    """

    def __init__(self, original: io.TextIOBase) -> None:
        self._original = original
        self._buffer = io.StringIO()

    def write(self, data: str) -> int:
        self._original.write(data)
        self._buffer.write(data)
        return len(data)

    def flush(self) -> None:
        self._original.flush()

    def getvalue(self) -> str:
        return self._buffer.getvalue()


def _normalize_dataset(dataset: str) -> str:
    """Convert a release shorthand to its results directory name.

    Examples:
        "2024_01"  -> "scdb_2024_01"
        "2024-1"   -> "scdb_2024_01"
        "custom"   -> "custom"  (anything else passes through)
    """
    if re.match(r"^\d{4}[_-]\d{1,2}$", dataset):
        from court_votes.release import SCDBRelease

        return SCDBRelease.from_string(dataset).output_name
    return dataset


def _git_commit_hash() -> str:
    """Get the current git commit hash, or 'unknown' if not in a repo."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return "unknown"


def upstream_dir(dataset: str, analysis_name: str, override: str | None = None) -> Path:
    """Resolve an upstream phase's output directory (its `latest` run by default)."""
    if override:
        return Path(override)
    return Path("results") / _normalize_dataset(dataset) / analysis_name / "latest"


class RunContext:
    """Context manager that sets up structured output for an analysis run.

    Creates the directory tree, captures console output, and writes
    metadata on exit.

    Attributes:
        dataset: Normalized dataset name (e.g. "scdb_2024_01").
        analysis_name: Name of the analysis phase (e.g. "agreement", "network").
        params: Script parameters to record in run_info.json.
        run_dir: Root of this run's output (results/<dataset>/<analysis>/<date>/).
        plots_dir: Directory for PNG plots.
        data_dir: Directory for parquet/intermediate data files.
    """

    def __init__(
        self,
        dataset: str,
        analysis_name: str,
        params: dict | None = None,
        results_root: Path | None = None,
        primer: str | None = None,
    ) -> None:
        self.dataset = _normalize_dataset(dataset)
        self.analysis_name = analysis_name
        self.params = params or {}

        root = results_root or Path("results")
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")

        self.run_dir = root / self.dataset / analysis_name / today
        self.plots_dir = self.run_dir / "plots"
        self.data_dir = self.run_dir / "data"

        # Parent of date dirs: where the `latest` symlink and primer live
        self._analysis_dir = root / self.dataset / analysis_name
        self._today = today
        self._primer = primer
        self._tee: _TeeStream | None = None
        self._original_stdout: io.TextIOBase | None = None
        self._start_time: datetime | None = None

    def __enter__(self) -> RunContext:
        self.setup()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.finalize(failed=exc_type is not None)

    def setup(self) -> None:
        """Create directories, write primer, and start log capture."""
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.plots_dir.mkdir(exist_ok=True)
        self.data_dir.mkdir(exist_ok=True)

        # Analysis primer lives at the analysis level, not per-run
        if self._primer:
            readme = self._analysis_dir / "README.md"
            readme.write_text(self._primer, encoding="utf-8")

        self._original_stdout = sys.stdout
        self._tee = _TeeStream(sys.stdout)
        sys.stdout = self._tee  # type: ignore[assignment]
        self._start_time = datetime.now(timezone.utc)

    def finalize(self, failed: bool = False) -> None:
        """Write run_info.json, run_log.txt, and update latest symlink."""
        # Restore stdout before writing metadata (so our writes aren't captured)
        log_text = ""
        if self._tee is not None:
            log_text = self._tee.getvalue()
        if self._original_stdout is not None:
            sys.stdout = self._original_stdout  # type: ignore[assignment]

        log_path = self.run_dir / "run_log.txt"
        log_path.write_text(log_text, encoding="utf-8")

        end_time = datetime.now(timezone.utc)
        run_info = {
            "analysis": self.analysis_name,
            "dataset": self.dataset,
            "run_date": self._today,
            "timestamp_start": (self._start_time.isoformat() if self._start_time else None),
            "timestamp_end": end_time.isoformat(),
            "status": "failed" if failed else "ok",
            "git_commit": _git_commit_hash(),
            "python_version": sys.version,
            "params": self.params,
        }
        info_path = self.run_dir / "run_info.json"
        with open(info_path, "w") as f:
            json.dump(run_info, f, indent=2, default=str)

        # A failed run must not become `latest` for downstream phases
        if failed:
            return

        # Relative symlink so the results tree is portable
        latest = self._analysis_dir / "latest"
        if latest.is_symlink() or latest.exists():
            latest.unlink()
        latest.symlink_to(self._today)
