from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReachabilityResult(BaseModel):
    """Outcome of a single reachability check."""

    reachable: bool = Field(..., description="True if the host responded")
    latency_ms: Optional[float] = Field(
        None,
        ge=0.0,
        description="Roundtrip time in milliseconds; None if unreachable",
    )


class OsInfo(BaseModel):
    """OS caption and boot time reported by a host."""

    caption: str
    boot_time: datetime


class RawDisk(BaseModel):
    device: str
    free_bytes: int = Field(..., ge=0)
    total_bytes: int = Field(..., ge=0)


class RawService(BaseModel):
    name: str
    status: str


class HostSnapshot(BaseModel):
    """Unclassified output of all sub-probes for one host."""

    host: str
    reachability: ReachabilityResult
    os_info: OsInfo
    disks: List[RawDisk] = Field(default_factory=list)
    services: List[RawService] = Field(default_factory=list)
