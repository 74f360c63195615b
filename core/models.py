"""
Shared data models for one scan run:
Target -> PortRange -> ScanResult (one per port) -> ScanReport.
"""

from __future__ import annotations

import datetime as dt
import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.ports import check_bounds, port_sequence


class PortState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"


class Target(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    address: str

    @property
    def ip_version(self) -> int:
        return ipaddress.ip_address(self.address).version


@dataclass(frozen=True)
class PortRange:
    start: int
    end: int

    def __post_init__(self):
        check_bounds(self.start, self.end)

    def __iter__(self) -> Iterator[int]:
        return iter(port_sequence(self.start, self.end))

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.start <= port <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ScanTask:
    target: Target
    port: int


class ScanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=1, le=65535)
    state: PortState
    service: Optional[str] = None

    @model_validator(mode="after")
    def _service_only_when_open(self) -> "ScanResult":
        if self.state is PortState.OPEN and not self.service:
            raise ValueError("open ports must carry a service label")
        if self.state is not PortState.OPEN and self.service is not None:
            raise ValueError("only open ports carry a service label")
        return self


class ScanReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: Target
    port_start: int
    port_end: int
    results: Tuple[ScanResult, ...] = ()
    counts: Dict[str, int] = Field(default_factory=dict)
    elapsed_s: float = 0.0
    started_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    cancelled: bool = False

    def count(self, state: PortState) -> int:
        return self.counts.get(state.value, 0)

    def open_ports(self) -> List[ScanResult]:
        return [r for r in self.results if r.state is PortState.OPEN]

    @property
    def complete(self) -> bool:
        return not self.cancelled and len(self.results) == self.port_end - self.port_start + 1
