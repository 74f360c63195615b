"""
In-memory report store with optional JSON cache.
Keeps finished reports available for the CLI `report` command and the API.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from core.config import settings
from core.models import ScanReport

log = logging.getLogger(__name__)


class StateManager:
    def __init__(self, cache_path: Optional[str] = None, max_reports: int = 50):
        path = cache_path or settings.json_cache_path
        self.cache_path = Path(path) if path else None
        self.max_reports = max_reports
        self.reports: List[Dict] = []
        self._lock = threading.Lock()
        self._load_cache()

    def _load_cache(self):
        if self.cache_path and self.cache_path.exists():
            try:
                data = json.loads(self.cache_path.read_text())
                self.reports = data.get("reports", [])
            except Exception:  # noqa: BLE001
                log.warning("failed to load cache from %s", self.cache_path)

    def _persist(self):
        if not self.cache_path:
            return
        try:
            self.cache_path.write_text(json.dumps({"reports": self.reports}, indent=2, default=str))
        except Exception:  # noqa: BLE001
            log.warning("failed to persist cache to %s", self.cache_path)

    def record_report(self, report: ScanReport):
        doc = report.model_dump(mode="json")
        with self._lock:
            self.reports.append(doc)
            del self.reports[: -self.max_reports]
            self._persist()

    def list_reports(self, target: Optional[str] = None) -> List[Dict]:
        with self._lock:
            reports = list(self.reports)
        if target:
            return [
                r for r in reports
                if target in (r.get("target", {}).get("host"), r.get("target", {}).get("address"))
            ]
        return reports

    def latest(self, target: Optional[str] = None) -> Optional[ScanReport]:
        docs = self.list_reports(target)
        if not docs:
            return None
        return ScanReport.model_validate(docs[-1])
