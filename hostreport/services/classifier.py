import math
from datetime import datetime
from typing import Iterable, List, Optional

from hostreport.models.host import DiskRecord, HostResult, Level, ServiceRecord
from hostreport.models.probe import HostSnapshot, RawDisk, RawService
from hostreport.services.thresholds import (
    classify_disk_free_pct,
    classify_service_status,
    disk_free_pct,
)

_SECONDS_PER_DAY = 86400


def classify_disks(
    raw_disks: Iterable[RawDisk],
    warn_pct: float,
    crit_pct: float,
) -> List[DiskRecord]:
    records: List[DiskRecord] = []
    for disk in raw_disks:
        pct = disk_free_pct(disk.free_bytes, disk.total_bytes)
        records.append(
            DiskRecord(
                device=disk.device,
                free_bytes=disk.free_bytes,
                total_bytes=disk.total_bytes,
                free_pct=pct,
                level=classify_disk_free_pct(pct, warn_pct, crit_pct),
            )
        )
    return records


def classify_services(raw_services: Iterable[RawService]) -> List[ServiceRecord]:
    return [
        ServiceRecord(
            name=service.name,
            status=service.status,
            level=classify_service_status(service.status),
        )
        for service in raw_services
    ]


def count_level(records, level: Level) -> int:
    return sum(1 for record in records if record.level == level)


def min_free_pct(disks: List[DiskRecord]) -> Optional[float]:
    """Lowest free percentage, or None when no disk was enumerated."""
    if not disks:
        return None
    return min(disk.free_pct for disk in disks)


def uptime_days(boot_time: datetime, now: datetime) -> int:
    seconds = (now - boot_time).total_seconds()
    return max(0, math.floor(seconds / _SECONDS_PER_DAY))


def build_host_result(
    snapshot: HostSnapshot,
    warn_pct: float,
    crit_pct: float,
    collected_at: datetime,
) -> HostResult:
    """
    Classify a raw snapshot and assemble the HostResult.

    collected_at must be timezone-aware if the snapshot's boot time is, since
    the uptime is computed as the difference between both.
    """
    disks = classify_disks(snapshot.disks, warn_pct, crit_pct)
    services = classify_services(snapshot.services)

    return HostResult(
        host=snapshot.host,
        reachable=snapshot.reachability.reachable,
        latency_ms=snapshot.reachability.latency_ms,
        os_name=snapshot.os_info.caption,
        uptime_days=uptime_days(snapshot.os_info.boot_time, collected_at),
        min_disk_free_pct=min_free_pct(disks),
        disk_warn=count_level(disks, Level.WARN),
        disk_crit=count_level(disks, Level.CRIT),
        svc_warn=count_level(services, Level.WARN),
        svc_crit=count_level(services, Level.CRIT),
        disks=disks,
        services=services,
        collected_at=collected_at,
    )
