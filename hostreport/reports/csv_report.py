import csv
import io
from pathlib import Path
from typing import Any, List

from hostreport.models.host import CollectionReport, HostResult

COLUMNS = [
    "host",
    "reachable",
    "latency_ms",
    "os_name",
    "uptime_days",
    "min_disk_free_pct",
    "disk_warn",
    "disk_crit",
    "svc_warn",
    "svc_crit",
    "disks",
    "services",
    "collected_at",
    "error",
]


def _cell(value: Any) -> Any:
    # None stays an empty cell so "not collected" is distinguishable from 0
    return "" if value is None else value


def _host_row(result: HostResult) -> List[Any]:
    disks = "; ".join(f"{disk.device}={disk.free_pct}%" for disk in result.disks)
    services = "; ".join(f"{svc.name}={svc.status}" for svc in result.services)
    return [
        result.host,
        result.reachable,
        _cell(result.latency_ms),
        result.os_name,
        result.uptime_days,
        _cell(result.min_disk_free_pct),
        _cell(result.disk_warn),
        _cell(result.disk_crit),
        _cell(result.svc_warn),
        _cell(result.svc_crit),
        disks,
        services,
        result.collected_at.isoformat(),
        _cell(result.error),
    ]


def render_csv(report: CollectionReport) -> str:
    """One row per host; disk and service lists are flattened into one cell each."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(COLUMNS)
    for result in report.hosts:
        writer.writerow(_host_row(result))
    return buffer.getvalue()


def write_csv(report: CollectionReport, output_path: Path) -> None:
    output_path.write_text(render_csv(report), encoding="utf-8", newline="")
