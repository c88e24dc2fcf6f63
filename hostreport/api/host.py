from typing import List

from fastapi import APIRouter, HTTPException

from hostreport import config
from hostreport.errors import ConfigError
from hostreport.models.host import CollectionReport, HostResult
from hostreport.services import collector

router = APIRouter()


def _collect() -> CollectionReport:
    try:
        settings = config.get_settings()
    except ConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return collector.collect(settings)


@router.get("/report", response_model=CollectionReport, summary="Host report")
def host_report() -> CollectionReport:
    """
    Run a collection pass over all configured hosts and return the full report.

    Unreachable or failing hosts are part of the result (reachable=false,
    os_name="ERROR"); only an unusable configuration yields HTTP 503.
    """
    return _collect()


@router.get("/status", response_model=List[HostResult], summary="Host status")
def host_status() -> List[HostResult]:
    """Return only the per-host results of a fresh collection pass."""
    return _collect().hosts
