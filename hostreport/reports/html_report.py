import html
from pathlib import Path
from typing import List, Optional

from hostreport.models.host import CollectionReport, HostResult, Level

_STYLE = """
        body {
            font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
            margin: 1.5rem;
            background: #f5f5f5;
        }
        h1, h2 {
            margin-bottom: 0.25rem;
        }
        .meta {
            margin-bottom: 1rem;
            font-size: 0.9rem;
            color: #555;
        }
        table {
            border-collapse: collapse;
            width: 100%;
            background: #fff;
            margin-bottom: 1rem;
        }
        th, td {
            border: 1px solid #ddd;
            padding: 0.35rem 0.5rem;
            font-size: 0.85rem;
            text-align: left;
        }
        th {
            background: #eee;
        }
        details {
            background: #fff;
            border: 1px solid #ddd;
            margin-bottom: 0.5rem;
            padding: 0.5rem;
        }
        summary {
            cursor: pointer;
            font-weight: 600;
        }
        .ok { background: #e6f4ea; }
        .warn { background: #fff4d6; }
        .crit { background: #fde2e1; }
"""


def _esc(value: object) -> str:
    return html.escape(str(value), quote=True)


def _opt(value: Optional[object], suffix: str = "") -> str:
    if value is None:
        return "&ndash;"
    return _esc(f"{value}{suffix}")


def _gib(num_bytes: int) -> str:
    return f"{num_bytes / 1024 ** 3:.1f} GiB"


def _summary_row(index: int, result: HostResult) -> str:
    reach = "yes" if result.reachable else "no"
    return (
        f'<tr class="{result.level.value}">'
        f'<td><a href="#host-{index}">{_esc(result.host)}</a></td>'
        f"<td>{reach}</td>"
        f"<td>{_opt(result.latency_ms, ' ms')}</td>"
        f"<td>{_esc(result.os_name)}</td>"
        f"<td>{result.uptime_days}</td>"
        f"<td>{_opt(result.min_disk_free_pct, '%')}</td>"
        f"<td>{_opt(result.disk_warn)} / {_opt(result.disk_crit)}</td>"
        f"<td>{_opt(result.svc_warn)} / {_opt(result.svc_crit)}</td>"
        "</tr>"
    )


def _host_detail(index: int, result: HostResult) -> str:
    parts: List[str] = [
        f'<details id="host-{index}" class="{result.level.value}">',
        f"<summary>{_esc(result.host)} &ndash; {_esc(result.os_name)}</summary>",
    ]
    if result.error:
        parts.append(f'<p class="crit">Probe failed: {_esc(result.error)}</p>')

    if result.disks:
        parts.append(
            "<table><thead><tr><th>Device</th><th>Free</th><th>Total</th>"
            "<th>Free %</th></tr></thead><tbody>"
        )
        for disk in result.disks:
            parts.append(
                f'<tr class="{disk.level.value}"><td>{_esc(disk.device)}</td>'
                f"<td>{_gib(disk.free_bytes)}</td><td>{_gib(disk.total_bytes)}</td>"
                f"<td>{disk.free_pct}%</td></tr>"
            )
        parts.append("</tbody></table>")
    else:
        parts.append("<p>No fixed disks reported.</p>")

    if result.services:
        parts.append(
            "<table><thead><tr><th>Service</th><th>Status</th></tr></thead><tbody>"
        )
        for service in result.services:
            parts.append(
                f'<tr class="{service.level.value}"><td>{_esc(service.name)}</td>'
                f"<td>{_esc(service.status)}</td></tr>"
            )
        parts.append("</tbody></table>")

    parts.append(f"<p class=\"meta\">Collected at {_esc(result.collected_at.isoformat())}</p>")
    parts.append("</details>")
    return "\n".join(parts)


def render_html(report: CollectionReport) -> str:
    """
    Human readable report: a summary table with one row per host, followed by
    an expandable detail block per host. Severities map to the CSS classes
    ok, warn and crit.
    """
    # Anchors use the position; configured host names may repeat
    rows = "\n".join(
        _summary_row(index, result) for index, result in enumerate(report.hosts)
    )
    details = "\n".join(
        _host_detail(index, result) for index, result in enumerate(report.hosts)
    )
    failed = report.failed_hosts
    level = Level.CRIT.value if failed else Level.OK.value

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{_esc(report.title)}</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <h1>{_esc(report.title)}</h1>
    <div class="meta">
        <div><strong>Generated:</strong> {_esc(report.generated_at.isoformat())}</div>
        <div><strong>Hosts:</strong> {len(report.hosts)}
            (<span class="{level}">{failed} failed</span>)</div>
        <div><strong>Disk thresholds:</strong> warn &lt; {report.warn_pct}% free,
            crit &lt; {report.crit_pct}% free</div>
    </div>

    <h2>Summary</h2>
    <table>
        <thead>
            <tr>
                <th>Host</th>
                <th>Reachable</th>
                <th>Latency</th>
                <th>OS</th>
                <th>Uptime (days)</th>
                <th>Min free</th>
                <th>Disks warn / crit</th>
                <th>Services warn / crit</th>
            </tr>
        </thead>
        <tbody>
{rows}
        </tbody>
    </table>

    <h2>Details</h2>
{details}
</body>
</html>
"""


def write_html(report: CollectionReport, output_path: Path) -> None:
    output_path.write_text(render_html(report), encoding="utf-8")
