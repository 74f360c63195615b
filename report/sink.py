"""
File sink for finished reports. Write failures surface as SinkWriteError
and never touch the in-memory report.
"""

import logging
from pathlib import Path
from typing import Optional

from core.config import settings
from core.errors import SinkWriteError
from core.models import ScanReport
from report.render import render

log = logging.getLogger(__name__)


class FileSink:
    def __init__(self, path: Optional[str] = None, fmt: Optional[str] = None, open_only: bool = False):
        self.path = Path(path or settings.output_path)
        self.fmt = fmt or settings.output_format
        self.open_only = open_only

    def write(self, report: ScanReport) -> str:
        payload = render(report, fmt=self.fmt, open_only=self.open_only)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise SinkWriteError(f"cannot write report to {self.path}: {exc}", report=report, destination=str(self.path)) from exc
        log.info("results saved to %s", self.path)
        return str(self.path)
