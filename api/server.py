"""
FastAPI proxy exposing scanner actions. Reads Elasticsearch and cache
settings via core.config and forwards to the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from core.errors import InvalidRangeError, ResolutionError, SchedulerFaultError
from pipeline.orchestrator import Orchestrator
from probers.services import WELL_KNOWN_SERVICES

log = logging.getLogger(__name__)

app = FastAPI(title="badmap API", version="1.0")
orch = Orchestrator()


class ScanPayload(BaseModel):
    target: str = Field(..., min_length=1)
    start: Optional[int] = None
    end: Optional[int] = None
    concurrency: Optional[int] = Field(None, ge=1)
    timeout: Optional[float] = Field(None, gt=0)
    deadline: Optional[float] = Field(None, gt=0)


@app.post("/api/scan")
def api_scan(payload: ScanPayload):
    try:
        report = orch.scan(
            payload.target,
            start=payload.start,
            end=payload.end,
            concurrency=payload.concurrency,
            timeout=payload.timeout,
            deadline=payload.deadline,
        )
    except (InvalidRangeError, ResolutionError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SchedulerFaultError as exc:
        log.error("scan aborted: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        log.exception("scan failed")
        raise HTTPException(status_code=500, detail="scan failed") from exc
    orch.emit_elk(report)
    return report.model_dump(mode="json")


@app.get("/api/report")
def api_report(target: str = Query(...)):
    try:
        return {"reports": orch.report(target)}
    except Exception as exc:  # noqa: BLE001
        log.exception("report failed")
        raise HTTPException(status_code=500, detail="report failed") from exc


@app.get("/api/services")
def api_services():
    return {"services": {str(port): name for port, name in sorted(WELL_KNOWN_SERVICES.items())}}


@app.get("/api/health")
def api_health():
    try:
        return orch.verify()
    except Exception as exc:  # noqa: BLE001
        log.exception("health check failed")
        raise HTTPException(status_code=500, detail="health check failed") from exc
