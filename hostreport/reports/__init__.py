"""Renderers turning a CollectionReport into CSV, JSON and HTML files."""

from pathlib import Path
from typing import Dict, Iterable

from hostreport.models.host import CollectionReport
from hostreport.reports.csv_report import render_csv, write_csv
from hostreport.reports.html_report import render_html, write_html
from hostreport.reports.json_report import render_json, write_json

WRITERS = {
    "csv": write_csv,
    "json": write_json,
    "html": write_html,
}


def write_reports(
    report: CollectionReport,
    output_dir: Path,
    formats: Iterable[str] = ("csv", "json", "html"),
) -> Dict[str, Path]:
    """
    Write the requested formats into output_dir and return their paths.

    File names share a timestamped stem, e.g. host-report-20240101-120000.json.
    """
    stem = f"host-report-{report.generated_at.strftime('%Y%m%d-%H%M%S')}"
    paths: Dict[str, Path] = {}
    for fmt in formats:
        writer = WRITERS[fmt]
        path = Path(output_dir) / f"{stem}.{fmt}"
        writer(report, path)
        paths[fmt] = path
    return paths


__all__ = [
    "WRITERS",
    "render_csv",
    "render_html",
    "render_json",
    "write_reports",
]
