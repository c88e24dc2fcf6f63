from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

# OS marker used for hosts whose probing failed outright
ERROR_MARKER = "ERROR"


class Level(str, Enum):
    """Severity of a single metric. The values double as CSS classes."""

    OK = "ok"
    WARN = "warn"
    CRIT = "crit"


class ServiceState(str, Enum):
    """Service states reported by the probes."""

    RUNNING = "running"
    STOPPED = "stopped"
    NOT_FOUND = "not-found"
    OTHER = "other"


class DiskRecord(BaseModel):
    """Free space of one fixed volume, classified against the thresholds."""

    model_config = ConfigDict(frozen=True)

    device: str = Field(..., description="Device or mount identifier, e.g. C: or /dev/sda1")
    free_bytes: int = Field(..., ge=0, description="Free space in bytes")
    total_bytes: int = Field(..., ge=0, description="Volume size in bytes")
    free_pct: float = Field(
        ...,
        ge=0.0,
        description="Free space in percent, rounded to one decimal (0 for empty volumes)",
    )
    level: Level = Field(..., description="Severity derived from free_pct")


class ServiceRecord(BaseModel):
    """Observed state of one configured service."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Service name as configured")
    status: str = Field(
        ...,
        description="running, stopped, not-found or the raw state reported by the host",
    )
    level: Level = Field(..., description="Severity derived from status")


class HostResult(BaseModel):
    """
    Aggregated result for one configured host.

    Optional counters are None when the data was never collected; a host that
    was probed successfully but has no warnings reports 0 instead.
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., description="Host identifier as configured")
    reachable: bool = Field(..., description="True if the host answered the reachability check")
    latency_ms: Optional[float] = Field(
        None,
        ge=0.0,
        description="Round trip time in milliseconds, if the host was reachable",
    )
    os_name: str = Field(..., description="OS display name, or ERROR if probing failed")
    uptime_days: int = Field(0, ge=0, description="Whole days since boot")
    min_disk_free_pct: Optional[float] = Field(
        None,
        description="Lowest free percentage across all disks; None without disks",
    )
    disk_warn: Optional[int] = Field(None, ge=0)
    disk_crit: Optional[int] = Field(None, ge=0)
    svc_warn: Optional[int] = Field(None, ge=0)
    svc_crit: Optional[int] = Field(None, ge=0)
    disks: List[DiskRecord] = Field(default_factory=list)
    services: List[ServiceRecord] = Field(default_factory=list)
    collected_at: datetime = Field(..., description="UTC timestamp of the collection")
    error: Optional[str] = Field(
        None,
        description="Failure detail if the host could not be probed",
    )

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def level(self) -> Level:
        """Overall severity of the host, used for the summary row."""
        if self.failed or self.disk_crit or self.svc_crit:
            return Level.CRIT
        if not self.reachable or self.disk_warn or self.svc_warn:
            return Level.WARN
        return Level.OK

    @classmethod
    def failed_result(cls, host: str, error: str, collected_at: datetime) -> "HostResult":
        """Build the placeholder record for a host whose probing failed outright."""
        return cls(
            host=host,
            reachable=False,
            latency_ms=None,
            os_name=ERROR_MARKER,
            uptime_days=0,
            collected_at=collected_at,
            error=error,
        )


class CollectionReport(BaseModel):
    """Everything a renderer needs: the ordered host results plus run metadata."""

    model_config = ConfigDict(frozen=True)

    title: str
    generated_at: datetime
    warn_pct: float
    crit_pct: float
    hosts: List[HostResult] = Field(default_factory=list)

    @computed_field
    @property
    def failed_hosts(self) -> int:
        return sum(1 for result in self.hosts if result.failed)
