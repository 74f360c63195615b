"""
Elasticsearch sink for finished reports: one document per port result.
Uses official client; keeps retries/backoff minimal.
"""

from __future__ import annotations

import random
import time
from typing import Dict, Iterable, List

from elasticsearch import Elasticsearch, helpers

from core.config import settings
from core.errors import SinkWriteError
from core.models import PortState, ScanReport


class ElasticsearchAdapter:
    def __init__(self, client: Elasticsearch | None = None):
        self.index = settings.elasticsearch_index
        self.batch_size = settings.bulk_batch_size
        if client is not None:
            self.client = client
            return
        if not settings.elasticsearch_url:
            raise ValueError("BADMAP_ELASTICSEARCH_URL is required for ElasticsearchAdapter")

        client_args: Dict = {
            "hosts": [settings.elasticsearch_url],
            "verify_certs": settings.elasticsearch_verify_certs,
        }

        if settings.elasticsearch_api_key:
            client_args["api_key"] = settings.elasticsearch_api_key
        elif settings.elasticsearch_user and settings.elasticsearch_pass:
            client_args["basic_auth"] = (settings.elasticsearch_user, settings.elasticsearch_pass)

        if settings.elasticsearch_ca_cert:
            client_args["ca_certs"] = settings.elasticsearch_ca_cert

        self.client = Elasticsearch(**client_args)

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception:  # noqa: BLE001
            return False

    @staticmethod
    def report_docs(report: ScanReport) -> List[Dict]:
        started = report.started_at.isoformat()
        return [
            {
                "timestamp": started,
                "asset": report.target.host,
                "ip": report.target.address,
                "port_start": report.port_start,
                "port_end": report.port_end,
                "elapsed_s": report.elapsed_s,
                "port": r.port,
                "state": r.state.value,
                "service_guess": r.service,
                "cancelled": report.cancelled,
            }
            for r in report.results
        ]

    @staticmethod
    def reports_from_docs(docs: Iterable[Dict]) -> List[Dict]:
        """Group per-port documents back into report dicts, oldest run first."""
        runs: Dict[tuple, Dict] = {}
        for doc in docs:
            key = (doc.get("asset"), doc.get("ip"), doc.get("timestamp"))
            run = runs.setdefault(key, {"first": doc, "results": {}})
            run["results"][doc["port"]] = {
                "port": doc["port"],
                "state": doc["state"],
                "service": doc.get("service_guess"),
            }

        reports = []
        for (asset, ip, timestamp), run in runs.items():
            first = run["first"]
            results = [run["results"][p] for p in sorted(run["results"])]
            counts = {state.value: 0 for state in PortState}
            for r in results:
                counts[r["state"]] += 1
            report = ScanReport.model_validate(
                {
                    "target": {"host": asset, "address": ip},
                    "port_start": first.get("port_start", results[0]["port"]),
                    "port_end": first.get("port_end", results[-1]["port"]),
                    "results": results,
                    "counts": counts,
                    "elapsed_s": first.get("elapsed_s", 0.0),
                    "started_at": timestamp,
                    "cancelled": first.get("cancelled", False),
                }
            )
            reports.append(report.model_dump(mode="json"))
        reports.sort(key=lambda r: r["started_at"])
        return reports

    def bulk_index(self, docs: Iterable[Dict], max_attempts: int = 3, backoff_base: float = 1.0):
        doc_list = list(docs)
        if not doc_list:
            return

        def _chunks(seq: List[Dict], size: int):
            for i in range(0, len(seq), size):
                yield seq[i : i + size]

        for chunk in _chunks(doc_list, self.batch_size):
            actions = [{"_index": self.index, "_source": doc} for doc in chunk]
            for attempt in range(1, max_attempts + 1):
                try:
                    helpers.bulk(
                        self.client,
                        actions,
                        stats_only=True,
                        request_timeout=30,
                        raise_on_error=True,
                        max_retries=0,
                    )
                    break
                except Exception:  # noqa: BLE001
                    if attempt >= max_attempts:
                        raise
                    sleep_for = backoff_base * (2 ** (attempt - 1)) + random.random()
                    time.sleep(sleep_for)

    def write(self, report: ScanReport) -> str:
        try:
            self.bulk_index(self.report_docs(report))
        except Exception as exc:  # noqa: BLE001
            raise SinkWriteError(f"elasticsearch bulk index failed: {exc}", report=report, destination=self.index) from exc
        return self.index

    def search_by_target(self, target: str, size: int = 10000) -> List[Dict]:
        try:
            res = self.client.search(
                index=self.index,
                size=size,
                query={"bool": {"should": [{"term": {"asset.keyword": target}}, {"term": {"ip.keyword": target}}]}},
                sort=[{"timestamp": {"order": "desc"}}, {"port": {"order": "asc"}}],
            )
            hits = res.get("hits", {}).get("hits", [])
            return [h.get("_source", {}) for h in hits]
        except Exception:  # noqa: BLE001
            return []
