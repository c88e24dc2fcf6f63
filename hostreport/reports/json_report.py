import json
from pathlib import Path

from hostreport.models.host import CollectionReport

SCHEMA_VERSION = "1.0.0"


def render_json(report: CollectionReport) -> str:
    """
    Nested export of the whole collection.

    Disk and service sequences are kept per host; absent values are written
    as null, never as 0.
    """
    payload = {"schema_version": SCHEMA_VERSION}
    payload.update(report.model_dump(mode="json"))
    return json.dumps(payload, ensure_ascii=False, indent=2)


def write_json(report: CollectionReport, output_path: Path) -> None:
    output_path.write_text(render_json(report), encoding="utf-8")
