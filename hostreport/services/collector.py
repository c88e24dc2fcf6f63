"""Run one collection pass over all configured hosts."""

import concurrent.futures
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from hostreport.config import Settings
from hostreport.models.host import CollectionReport, HostResult
from hostreport.models.probe import HostSnapshot
from hostreport.services.classifier import build_host_result
from hostreport.services.host_monitor import probe_host
from hostreport.services.targets import resolve_target

logger = logging.getLogger(__name__)

HostProbe = Callable[[str, Settings], HostSnapshot]


def probe_configured_host(host: str, settings: Settings) -> HostSnapshot:
    """Resolve a configured host and probe it with the configured limits."""
    target = resolve_target(host, settings.command_timeout_seconds)
    return probe_host(
        target,
        settings.services,
        ping_timeout_seconds=settings.ping_timeout_seconds,
        host_timeout_seconds=settings.host_timeout_seconds,
    )


def collect_host(
    host: str,
    settings: Settings,
    probe: HostProbe = probe_configured_host,
) -> HostResult:
    """
    Probe and classify one host.

    Never raises: any failure while probing the host is logged and turned into
    a failed HostResult so the remaining hosts are unaffected.
    """
    try:
        snapshot = probe(host, settings)
        return build_host_result(
            snapshot,
            settings.warn_pct,
            settings.crit_pct,
            datetime.now(timezone.utc),
        )
    except Exception as exc:
        logger.error("Host %s failed: %s", host, exc)
        return HostResult.failed_result(host, str(exc), datetime.now(timezone.utc))


def collect_hosts(
    settings: Settings,
    probe: HostProbe = probe_configured_host,
) -> List[HostResult]:
    """
    Collect all configured hosts with bounded concurrency.

    The returned list has one entry per configured host, in configured order,
    whatever order the probes finish in.
    """
    hosts = list(settings.hosts)
    if not hosts:
        return []

    max_workers = min(settings.max_workers, len(hosts))
    if max_workers == 1:
        return [collect_host(host, settings, probe) for host in hosts]

    results: List[Optional[HostResult]] = [None] * len(hosts)
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers,
        thread_name_prefix="collect",
    ) as executor:
        future_to_index = {
            executor.submit(collect_host, host, settings, probe): index
            for index, host in enumerate(hosts)
        }
        for future in concurrent.futures.as_completed(future_to_index):
            results[future_to_index[future]] = future.result()

    return [result for result in results if result is not None]


def collect(
    settings: Settings,
    probe: HostProbe = probe_configured_host,
) -> CollectionReport:
    """Run a full collection pass and wrap the results for the renderers."""
    generated_at = datetime.now(timezone.utc)
    logger.info(
        "Starting host collection: %d host(s), %d service(s)",
        len(settings.hosts),
        len(settings.services),
    )

    hosts = collect_hosts(settings, probe)

    return CollectionReport(
        title=settings.report_title,
        generated_at=generated_at,
        warn_pct=settings.warn_pct,
        crit_pct=settings.crit_pct,
        hosts=hosts,
    )
