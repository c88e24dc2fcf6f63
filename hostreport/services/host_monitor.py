import concurrent.futures
import logging
import re
import subprocess
import sys
import threading
import time
from typing import List, Optional, Sequence

from hostreport.errors import ProbeError
from hostreport.models.host import ServiceState
from hostreport.models.probe import (
    HostSnapshot,
    OsInfo,
    RawDisk,
    RawService,
    ReachabilityResult,
)
from hostreport.services.targets import ProbeTarget

logger = logging.getLogger(__name__)

# Matches "time=2.34 ms" (Linux/macOS) as well as "time=2ms" / "time<1ms" (Windows)
_PING_TIME_PATTERN = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


def _ping_command(address: str, timeout_seconds: int) -> List[str]:
    if sys.platform.startswith("win"):
        return ["ping", "-n", "1", "-w", str(timeout_seconds * 1000), address]
    return ["ping", "-c", "1", "-W", str(timeout_seconds), "--", address]


def check_reachability(address: str, timeout_seconds: int = 1) -> ReachabilityResult:
    """
    Ping a single address once.

    Never raises: a missing ping binary, a timeout, a DNS failure or a non-zero
    return code all yield reachable=False with no latency. The latency is taken
    from the ping output, falling back to the measured elapsed time.
    """
    start = time.perf_counter()
    try:
        result = subprocess.run(
            _ping_command(address, timeout_seconds),
            check=False,
            capture_output=True,
            text=True,
            timeout=timeout_seconds + 2,
        )
    except FileNotFoundError:
        logger.debug("ping binary not found; %s treated as unreachable", address)
        return ReachabilityResult(reachable=False, latency_ms=None)
    except (subprocess.TimeoutExpired, OSError):
        return ReachabilityResult(reachable=False, latency_ms=None)
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    # Return code 0 means at least one reply was received
    if result.returncode != 0:
        return ReachabilityResult(reachable=False, latency_ms=None)

    latency_ms: Optional[float] = None
    match = _PING_TIME_PATTERN.search(result.stdout)
    if match:
        try:
            latency_ms = float(match.group(1))
        except ValueError:
            latency_ms = None
    if latency_ms is None:
        latency_ms = round(elapsed_ms, 2)

    return ReachabilityResult(reachable=True, latency_ms=latency_ms)


def _local_reachability() -> ReachabilityResult:
    return ReachabilityResult(reachable=True, latency_ms=0.0)


def query_os(target: ProbeTarget) -> OsInfo:
    """
    Query OS caption and boot time.

    Any failure is raised as ProbeError: without OS data the host counts as
    failed as a whole.
    """
    try:
        return target.executor.os_info()
    except ProbeError:
        raise
    except Exception as exc:
        raise ProbeError(target.host, f"OS query failed: {exc}") from exc


def enumerate_disks(
    target: ProbeTarget,
    stop: Optional[threading.Event] = None,
) -> List[RawDisk]:
    """Fixed/local volumes of the target. A failed enumeration yields no disks."""
    if stop is not None and stop.is_set():
        return []
    try:
        return target.executor.fixed_disks()
    except Exception as exc:
        logger.warning("Disk enumeration failed on %s: %s", target.host, exc)
        return []


def lookup_services(
    target: ProbeTarget,
    names: Sequence[str],
    stop: Optional[threading.Event] = None,
) -> List[RawService]:
    """
    Look up every configured service name, keeping the configured order.

    Lookups are independent: a name that fails to resolve is reported as
    not-found and the remaining names are still checked. Once stop is set no
    further lookup is started and the partial list is returned.
    """
    services: List[RawService] = []
    for name in names:
        if stop is not None and stop.is_set():
            break
        try:
            status = target.executor.service_status(name)
        except Exception as exc:
            logger.debug("Service lookup %r failed on %s: %s", name, target.host, exc)
            status = ServiceState.NOT_FOUND.value
        services.append(RawService(name=name, status=status))
    return services


def probe_host(
    target: ProbeTarget,
    services: Sequence[str],
    ping_timeout_seconds: int = 1,
    host_timeout_seconds: Optional[float] = None,
) -> HostSnapshot:
    """
    Run all four sub-probes for one host and return the raw snapshot.

    The sub-probes run concurrently. The OS query is the only one whose failure
    propagates (as ProbeError); exceeding host_timeout_seconds is reported the
    same way; on expiry the disk and service workers stop before their next
    query.
    """
    stop = threading.Event()
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=4,
        thread_name_prefix=f"probe-{target.address}",
    )
    try:
        if target.is_local:
            # No network hop for this machine
            reach_future = executor.submit(_local_reachability)
        else:
            reach_future = executor.submit(
                check_reachability, target.address, ping_timeout_seconds
            )
        os_future = executor.submit(query_os, target)
        disks_future = executor.submit(enumerate_disks, target, stop)
        services_future = executor.submit(lookup_services, target, list(services), stop)

        futures = [reach_future, os_future, disks_future, services_future]
        done, pending = concurrent.futures.wait(
            futures,
            timeout=host_timeout_seconds,
            return_when=concurrent.futures.FIRST_EXCEPTION,
        )
        for future in futures:
            if future in done and future.exception() is not None:
                raise future.exception()
        if pending:
            raise ProbeError(
                target.host,
                f"probe did not finish within {host_timeout_seconds}s",
            )

        return HostSnapshot(
            host=target.host,
            reachability=reach_future.result(),
            os_info=os_future.result(),
            disks=disks_future.result(),
            services=services_future.result(),
        )
    finally:
        stop.set()
        executor.shutdown(wait=False, cancel_futures=True)
