"""Output manager for writing crawl reports to disk."""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from shopcrawl.constants import (
    CONFIRMED_RESULTS_FILENAME,
    DEFAULT_OUTPUT_DIR,
    FAILED_RESULTS_FILENAME,
    SUMMARY_FILENAME,
)
from shopcrawl.models import CrawlReport

logger = logging.getLogger(__name__)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class OutputManager:
    """Persists a CrawlReport as JSON files in a single output directory.

    Every file is serialized completely in memory first and then swapped
    into place, so readers see either the previous file or the new one,
    never a partial write.
    """

    def __init__(self, output_dir: str = DEFAULT_OUTPUT_DIR):
        """Initialize output manager.

        Args:
            output_dir: Directory that receives the result files
        """
        self.output_dir = Path(output_dir)

    @property
    def confirmed_path(self) -> Path:
        return self.output_dir / CONFIRMED_RESULTS_FILENAME

    @property
    def failed_path(self) -> Path:
        return self.output_dir / FAILED_RESULTS_FILENAME

    @property
    def summary_path(self) -> Path:
        return self.output_dir / SUMMARY_FILENAME

    def save_report(self, report: CrawlReport) -> Dict[str, Path]:
        """Write the confirmed file and, when any domain failed, the failed file.

        A failed file left over from an earlier run is removed when this
        report has no failures.

        Args:
            report: Completed crawl report

        Returns:
            Mapping of file kind ("confirmed", "failed") to the path written
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written = {}

        self._save_json(self.confirmed_path, report.confirmed_records())
        written["confirmed"] = self.confirmed_path
        logger.info(f"Saved confirmed product URLs to {self.confirmed_path}")

        if report.has_failures:
            self._save_json(self.failed_path, report.failed_records())
            written["failed"] = self.failed_path
            logger.info(f"Saved failed URLs to {self.failed_path}")
        elif self.failed_path.exists():
            self.failed_path.unlink()
            logger.info(f"Removed stale {self.failed_path} (no failures this run)")

        return written

    def save_summary(self, report: CrawlReport, started_at: Optional[datetime] = None) -> Path:
        """Write per-domain statistics for operators.

        Args:
            report: Completed crawl report
            started_at: When the crawl began

        Returns:
            Path of the summary file
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        summary = report.to_summary()
        summary["started_at"] = started_at
        summary["finished_at"] = datetime.now()
        self._save_json(self.summary_path, summary)
        return self.summary_path

    def _save_json(self, path: Path, data) -> None:
        """Save data as JSON, atomically replacing any existing file.

        Args:
            path: File path
            data: Data to save
        """
        payload = json.dumps(data, indent=2, cls=DateTimeEncoder, ensure_ascii=False)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
