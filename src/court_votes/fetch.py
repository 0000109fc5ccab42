"""Download and unpack Supreme Court Database releases."""

import random
import time
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import requests
from tqdm import tqdm

from court_votes.config import CHUNK_SIZE, MAX_RETRIES, REQUEST_TIMEOUT, RETRY_DELAY, USER_AGENT
from court_votes.release import SCDBRelease


@dataclass(frozen=True)
class DownloadResult:
    """Result of an archive download attempt."""

    url: str
    path: Path | None
    status_code: int | None = None
    error_type: str | None = None  # permanent, transient, timeout, connection
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.path is not None


class SCDBFetcher:
    """Fetches one SCDB justice-centered release into data/<release>/."""

    def __init__(self, release: SCDBRelease, output_dir: Path | None = None):
        self.release = release
        self.output_dir = output_dir or release.data_dir
        self.http = requests.Session()
        self.http.headers.update({"User-Agent": USER_AGENT})
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def archive_path(self) -> Path:
        return self.output_dir / self.release.zip_name

    @property
    def csv_path(self) -> Path:
        return self.output_dir / self.release.csv_name

    def _download(self, url: str, dest: Path) -> DownloadResult:
        """Stream a URL to disk with retries.

        Retry strategy varies by error type:
        - 404: permanent, no retry
        - 5xx: exponential backoff (5s, 10s, 20s)
        - Timeout: exponential backoff
        - Connection error: fixed 5s delay
        """
        last_error = ""
        last_status: int | None = None
        last_error_type: str | None = None
        retry_delay = RETRY_DELAY
        partial = dest.with_suffix(dest.suffix + ".part")

        for attempt in range(MAX_RETRIES):
            try:
                with self.http.get(url, timeout=REQUEST_TIMEOUT, stream=True) as resp:
                    resp.raise_for_status()
                    total = int(resp.headers.get("content-length", 0)) or None
                    with (
                        open(partial, "wb") as f,
                        tqdm(
                            total=total,
                            desc=dest.name,
                            unit="B",
                            unit_scale=True,
                        ) as bar,
                    ):
                        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                            f.write(chunk)
                            bar.update(len(chunk))
                partial.replace(dest)
                return DownloadResult(url=url, path=dest, status_code=resp.status_code)

            except requests.HTTPError as e:
                last_status = e.response.status_code if e.response is not None else None
                last_error = str(e)
                if last_status is not None and last_status >= 500:
                    last_error_type = "transient"
                    retry_delay = RETRY_DELAY * (2**attempt) * (1 + random.uniform(0, 0.5))
                else:
                    # 404 and other 4xx: the release does not exist at this URL
                    last_error_type = "permanent"
                    print(f"  Failed: {url}: {e}")
                    break

            except requests.Timeout as e:
                last_error = str(e)
                last_error_type = "timeout"
                last_status = None
                retry_delay = RETRY_DELAY * (2**attempt) * (1 + random.uniform(0, 0.5))

            except requests.RequestException as e:
                last_error = str(e)
                last_error_type = "connection"
                last_status = None
                retry_delay = RETRY_DELAY

            if attempt + 1 < MAX_RETRIES:
                print(f"  Retry {attempt + 1}/{MAX_RETRIES} for {url}: {last_error}")
                time.sleep(retry_delay)
            else:
                print(f"  Failed after {MAX_RETRIES} attempts: {url}: {last_error}")

        partial.unlink(missing_ok=True)
        return DownloadResult(
            url=url,
            path=None,
            status_code=last_status,
            error_type=last_error_type,
            error_message=last_error,
        )

    def extract(self) -> Path:
        """Extract the justice-centered CSV from the cached archive."""
        with zipfile.ZipFile(self.archive_path) as zf:
            members = [m for m in zf.namelist() if m.lower().endswith(".csv")]
            if not members:
                raise FileNotFoundError(f"No CSV inside {self.archive_path.name}")
            with zf.open(members[0]) as src, open(self.csv_path, "wb") as dst:
                while chunk := src.read(CHUNK_SIZE):
                    dst.write(chunk)
        print(f"  Extracted: {self.csv_path}")
        return self.csv_path

    def run(self, force: bool = False) -> Path | None:
        """Download (unless cached) and extract the release CSV.

        Returns the CSV path, or None when the download failed.
        """
        print("=" * 60)
        print(f"  {self.release.label} Fetch")
        print(f"  Started at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"  Source: {self.release.url}")
        print("=" * 60)

        if self.csv_path.exists() and not force:
            print(f"  Using cached CSV: {self.csv_path}")
            return self.csv_path

        if force or not self.archive_path.exists():
            result = self._download(self.release.url, self.archive_path)
            if not result.ok:
                print(f"  Download failed ({result.error_type}): {result.error_message}")
                return None
        else:
            print(f"  Using cached archive: {self.archive_path}")

        return self.extract()

    def clear_cache(self) -> None:
        """Remove the downloaded archive and extracted CSV."""
        for path in (self.archive_path, self.csv_path):
            if path.exists():
                path.unlink()
        print("Cache cleared.")
