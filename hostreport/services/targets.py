"""
Target routing: decide once per host whether it is probed locally or remotely.

Both executors expose the same three queries (OS info, fixed disks, service
state) so the sub-probes never need to know where a host lives. Remote hosts
are queried over ssh; authentication is expected to be set up already
(keys/agent), no credentials are handled here.
"""

import logging
import platform
import shlex
import socket
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import FrozenSet, List, Optional, Set

import psutil

from hostreport.errors import ProbeError
from hostreport.models.host import ServiceState
from hostreport.models.probe import OsInfo, RawDisk

logger = logging.getLogger(__name__)

_LOCAL_ALIASES = {"localhost", "127.0.0.1", "::1", "."}

# Filesystems that are never "fixed local storage": network, optical and
# memory-backed pseudo filesystems.
_EXCLUDED_FSTYPES = {
    "nfs",
    "nfs4",
    "cifs",
    "smbfs",
    "smb3",
    "sshfs",
    "fuse.sshfs",
    "afpfs",
    "9p",
    "iso9660",
    "udf",
    "squashfs",
    "tmpfs",
    "devtmpfs",
    "overlay",
    "ramfs",
}

_EXCLUDED_OPTS = {"cdrom", "removable"}

# Passed to df -x on remote hosts; -l already drops network filesystems.
_REMOTE_DF_EXCLUDES = ["tmpfs", "devtmpfs", "squashfs", "overlay", "iso9660", "udf", "ramfs"]


@lru_cache(maxsize=1)
def _own_host_names() -> FrozenSet[str]:
    # getfqdn may block on a DNS lookup; resolve once per process
    hostname = socket.gethostname().lower()
    return frozenset({hostname, hostname.split(".", 1)[0], socket.getfqdn().lower()})


def is_local_host(host: str) -> bool:
    """True if host names this machine (localhost alias or own host name)."""
    name = host.strip().lower()
    if name in _LOCAL_ALIASES:
        return True
    return name in _own_host_names()


def parse_systemctl_state(output: str) -> str:
    """
    Translate `systemctl show -p LoadState -p ActiveState` output into a
    ServiceState value.
    """
    props = {}
    for line in output.splitlines():
        if "=" in line:
            key, value = line.split("=", 1)
            props[key.strip()] = value.strip()

    if props.get("LoadState") in (None, "", "not-found"):
        return ServiceState.NOT_FOUND.value

    active = props.get("ActiveState", "")
    if active == "active":
        return ServiceState.RUNNING.value
    if active in ("inactive", "failed"):
        return ServiceState.STOPPED.value
    return ServiceState.OTHER.value


def normalize_windows_state(status: str) -> str:
    """Map psutil's Windows service status strings onto ServiceState values."""
    if status == "running":
        return ServiceState.RUNNING.value
    if status == "stopped":
        return ServiceState.STOPPED.value
    return ServiceState.OTHER.value


def parse_df_output(output: str) -> List[RawDisk]:
    """
    Parse `df -P -B1` output.

    Example line: "/dev/sda1  105089261568  52544630784  47175831552  53% /"
    The mount point is used as device identifier; it may contain spaces.
    """
    disks: List[RawDisk] = []
    seen: Set[str] = set()
    for line in output.splitlines()[1:]:
        parts = line.split()
        if len(parts) < 6:
            continue
        source = parts[0]
        mountpoint = " ".join(parts[5:])
        if source in seen:
            continue
        try:
            total = int(parts[1])
            free = int(parts[3])
        except ValueError:
            continue
        seen.add(source)
        disks.append(RawDisk(device=mountpoint, free_bytes=free, total_bytes=total))
    return disks


def _read_os_release(text: str) -> Optional[str]:
    for line in text.splitlines():
        if line.startswith("PRETTY_NAME="):
            return line.split("=", 1)[1].strip().strip('"') or None
    return None


class HostExecutor(ABC):
    """Facilities the sub-probes use to query one host."""

    is_local = False

    def __init__(self, command_timeout: float) -> None:
        self.command_timeout = command_timeout

    @abstractmethod
    def os_info(self) -> OsInfo:
        """Return OS caption and boot time; raise on failure."""

    @abstractmethod
    def fixed_disks(self) -> List[RawDisk]:
        """Return fixed/local volumes only."""

    @abstractmethod
    def service_status(self, name: str) -> str:
        """Return a ServiceState value for the named service."""


class LocalExecutor(HostExecutor):
    """Queries this machine through psutil and platform."""

    is_local = True

    def os_info(self) -> OsInfo:
        caption = None
        os_release = Path("/etc/os-release")
        if platform.system() == "Linux" and os_release.exists():
            caption = _read_os_release(os_release.read_text(encoding="utf-8"))
        if not caption:
            caption = f"{platform.system()} {platform.release()}".strip()

        boot_time = datetime.fromtimestamp(psutil.boot_time(), tz=timezone.utc)
        return OsInfo(caption=caption, boot_time=boot_time)

    def fixed_disks(self) -> List[RawDisk]:
        disks: List[RawDisk] = []
        seen: Set[str] = set()
        for part in psutil.disk_partitions(all=False):
            opts = set(part.opts.split(",")) if part.opts else set()
            if not part.fstype or part.fstype.lower() in _EXCLUDED_FSTYPES:
                continue
            if opts & _EXCLUDED_OPTS:
                continue
            if part.device in seen:
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as exc:
                logger.debug("Skipping %s: %s", part.mountpoint, exc)
                continue
            seen.add(part.device)
            disks.append(
                RawDisk(
                    device=_local_device_name(part.device, part.mountpoint),
                    free_bytes=usage.free,
                    total_bytes=usage.total,
                )
            )
        return disks

    def service_status(self, name: str) -> str:
        if hasattr(psutil, "win_service_get"):
            try:
                service = psutil.win_service_get(name)
                return normalize_windows_state(service.status())
            except psutil.NoSuchProcess:
                return ServiceState.NOT_FOUND.value

        try:
            result = subprocess.run(
                ["systemctl", "show", "-p", "LoadState", "-p", "ActiveState", "--", name],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except FileNotFoundError:
            # No systemd on this machine: nothing can be found
            return ServiceState.NOT_FOUND.value
        return parse_systemctl_state(result.stdout)


def _local_device_name(device: str, mountpoint: str) -> str:
    # Windows drive letters look like "C:\\"; report them as "C:"
    if platform.system() == "Windows":
        return device.rstrip("\\")
    return mountpoint


class RemoteExecutor(HostExecutor):
    """Queries a remote POSIX host through an already authorised ssh transport."""

    def __init__(self, address: str, command_timeout: float) -> None:
        super().__init__(command_timeout)
        self.address = address

    def _ssh_command(self, command: str) -> List[str]:
        connect_timeout = max(1, int(self.command_timeout))
        return [
            "ssh",
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={connect_timeout}",
            "--",
            self.address,
            command,
        ]

    def run(self, command: str, check: bool = True) -> str:
        """
        Run a shell command on the remote host and return its stdout.

        Raises ProbeError if ssh is missing, the call times out, or (with
        check=True) the command exits non-zero.
        """
        try:
            result = subprocess.run(
                self._ssh_command(command),
                check=False,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except FileNotFoundError as exc:
            raise ProbeError(self.address, "ssh binary not found on this system") from exc
        except subprocess.TimeoutExpired as exc:
            raise ProbeError(
                self.address,
                f"'{command}' timed out after {self.command_timeout}s",
            ) from exc

        # 255 is ssh's own failure code (connection refused, auth failure, ...)
        if result.returncode == 255 or (check and result.returncode != 0):
            raise ProbeError(
                self.address,
                f"'{command}' failed with return code {result.returncode}: "
                f"{result.stderr.strip()}",
            )
        return result.stdout

    def os_info(self) -> OsInfo:
        caption = _read_os_release(self.run("cat /etc/os-release 2>/dev/null || true"))
        if not caption:
            caption = self.run("uname -sr").strip()

        uptime_raw = self.run("cat /proc/uptime").split()
        try:
            uptime_seconds = float(uptime_raw[0])
        except (IndexError, ValueError) as exc:
            raise ProbeError(self.address, "could not parse /proc/uptime") from exc

        boot_time = datetime.now(timezone.utc) - timedelta(seconds=uptime_seconds)
        return OsInfo(caption=caption, boot_time=boot_time)

    def fixed_disks(self) -> List[RawDisk]:
        excludes = " ".join(f"-x {fstype}" for fstype in _REMOTE_DF_EXCLUDES)
        return parse_df_output(self.run(f"df -P -B1 -l {excludes}"))

    def service_status(self, name: str) -> str:
        # systemctl show exits 0 for unknown units and reports LoadState=not-found
        output = self.run(
            f"systemctl show -p LoadState -p ActiveState -- {shlex.quote(name)}",
            check=False,
        )
        return parse_systemctl_state(output)


@dataclass(frozen=True)
class ProbeTarget:
    """A configured host resolved to an address and the executor that reaches it."""

    host: str
    address: str
    executor: HostExecutor

    @property
    def is_local(self) -> bool:
        return self.executor.is_local


def resolve_target(host: str, command_timeout: float) -> ProbeTarget:
    address = host.strip()
    if is_local_host(address):
        return ProbeTarget(host=host, address="localhost", executor=LocalExecutor(command_timeout))
    return ProbeTarget(
        host=host,
        address=address,
        executor=RemoteExecutor(address, command_timeout),
    )
