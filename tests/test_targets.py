import subprocess
from collections import namedtuple
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from hostreport.errors import ProbeError
from hostreport.services import targets
from hostreport.services.targets import (
    LocalExecutor,
    RemoteExecutor,
    is_local_host,
    parse_df_output,
    parse_systemctl_state,
    resolve_target,
)

Partition = namedtuple("Partition", "device mountpoint fstype opts")
Usage = namedtuple("Usage", "total used free percent")


@pytest.fixture(autouse=True)
def _fresh_own_host_names():
    targets._own_host_names.cache_clear()
    yield
    targets._own_host_names.cache_clear()


def _completed(stdout="", returncode=0, stderr=""):
    return SimpleNamespace(stdout=stdout, stderr=stderr, returncode=returncode)


@pytest.mark.parametrize("host", ["localhost", "LOCALHOST", "127.0.0.1", "::1", "."])
def test_is_local_host_aliases(host):
    assert is_local_host(host) is True


def test_is_local_host_matches_own_name_case_insensitively(monkeypatch):
    monkeypatch.setattr(targets.socket, "gethostname", lambda: "Build-Box")
    monkeypatch.setattr(targets.socket, "getfqdn", lambda: "build-box.lan")

    assert is_local_host("build-box") is True
    assert is_local_host("BUILD-BOX.LAN") is True
    assert is_local_host("db01") is False


def test_own_host_names_are_resolved_once(monkeypatch):
    calls = []

    def fake_getfqdn():
        calls.append(1)
        return "build-box.lan"

    monkeypatch.setattr(targets.socket, "gethostname", lambda: "build-box")
    monkeypatch.setattr(targets.socket, "getfqdn", fake_getfqdn)

    for host in ["db01", "web01", "build-box", "BUILD-BOX.LAN", "files02"]:
        is_local_host(host)

    assert len(calls) == 1


def test_aliases_do_not_resolve_own_names(monkeypatch):
    def fail_getfqdn():
        raise AssertionError("localhost aliases need no name lookup")

    monkeypatch.setattr(targets.socket, "getfqdn", fail_getfqdn)

    assert is_local_host("localhost") is True


def test_resolve_target_routes_local_and_remote(monkeypatch):
    monkeypatch.setattr(targets.socket, "gethostname", lambda: "build-box")
    monkeypatch.setattr(targets.socket, "getfqdn", lambda: "build-box")

    local = resolve_target("LocalHost", command_timeout=5)
    remote = resolve_target("db01.example.org", command_timeout=5)

    assert local.is_local is True
    assert isinstance(local.executor, LocalExecutor)
    assert local.host == "LocalHost"

    assert remote.is_local is False
    assert isinstance(remote.executor, RemoteExecutor)
    assert remote.address == "db01.example.org"


def test_parse_systemctl_state():
    assert parse_systemctl_state("LoadState=loaded\nActiveState=active\n") == "running"
    assert parse_systemctl_state("LoadState=loaded\nActiveState=inactive\n") == "stopped"
    assert parse_systemctl_state("LoadState=loaded\nActiveState=failed\n") == "stopped"
    assert parse_systemctl_state("LoadState=loaded\nActiveState=activating\n") == "other"
    assert parse_systemctl_state("LoadState=not-found\nActiveState=inactive\n") == "not-found"
    assert parse_systemctl_state("") == "not-found"


def test_parse_df_output_skips_header_and_duplicate_sources():
    output = (
        "Filesystem     1-blocks        Used   Available Capacity Mounted on\n"
        "/dev/sda1  100000000000 60000000000 40000000000      60% /\n"
        "/dev/sdb1  200000000000 190000000000 10000000000     95% /srv/my data\n"
        "/dev/sda1  100000000000 60000000000 40000000000      60% /var/lib/bind\n"
    )

    disks = parse_df_output(output)

    assert [d.device for d in disks] == ["/", "/srv/my data"]
    assert disks[0].free_bytes == 40000000000
    assert disks[0].total_bytes == 100000000000


def test_local_fixed_disks_excludes_removable_network_and_optical(monkeypatch):
    partitions = [
        Partition("/dev/sda1", "/", "ext4", "rw,relatime"),
        Partition("//nas/share", "/mnt/nas", "cifs", "rw"),
        Partition("/dev/sr0", "/media/cdrom", "iso9660", "ro"),
        Partition("E:\\", "E:\\", "FAT32", "rw,removable"),
        Partition("/dev/sda1", "/var/lib/docker", "ext4", "rw"),
        Partition("/dev/sdb1", "/data", "xfs", "rw"),
    ]
    usages = {
        "/": Usage(100, 60, 40, 60.0),
        "/data": Usage(200, 190, 10, 95.0),
    }

    monkeypatch.setattr(targets.platform, "system", lambda: "Linux")
    monkeypatch.setattr(targets.psutil, "disk_partitions", lambda all=False: partitions)
    monkeypatch.setattr(targets.psutil, "disk_usage", lambda mountpoint: usages[mountpoint])

    disks = LocalExecutor(command_timeout=5).fixed_disks()

    assert [(d.device, d.free_bytes, d.total_bytes) for d in disks] == [
        ("/", 40, 100),
        ("/data", 10, 200),
    ]


def test_local_service_status_uses_systemctl(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        assert kwargs["timeout"] == 5
        if cmd[-1] == "sshd":
            return _completed("LoadState=loaded\nActiveState=active\n")
        return _completed("LoadState=not-found\nActiveState=inactive\n")

    monkeypatch.delattr(targets.psutil, "win_service_get", raising=False)
    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    executor = LocalExecutor(command_timeout=5)

    assert executor.service_status("sshd") == "running"
    assert executor.service_status("NoSuchSvc123") == "not-found"
    assert calls[0][:2] == ["systemctl", "show"]


def test_local_service_status_without_systemctl_is_not_found(monkeypatch):
    def fake_run(*args, **kwargs):
        raise FileNotFoundError("systemctl")

    monkeypatch.delattr(targets.psutil, "win_service_get", raising=False)
    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    assert LocalExecutor(command_timeout=5).service_status("Spooler") == "not-found"


def test_remote_os_info_over_ssh(monkeypatch):
    commands = []

    def fake_run(cmd, **kwargs):
        assert cmd[:3] == ["ssh", "-o", "BatchMode=yes"]
        assert cmd[-2] == "db01"
        commands.append(cmd[-1])
        if cmd[-1].startswith("cat /etc/os-release"):
            return _completed('NAME="Ubuntu"\nPRETTY_NAME="Ubuntu 22.04.4 LTS"\n')
        if cmd[-1] == "cat /proc/uptime":
            return _completed("432000.50 1234.00\n")
        raise AssertionError(f"Unexpected command {cmd[-1]!r}")

    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    info = RemoteExecutor("db01", command_timeout=10).os_info()

    assert info.caption == "Ubuntu 22.04.4 LTS"
    age = datetime.now(timezone.utc) - info.boot_time
    assert 4.99 < age.total_seconds() / 86400 < 5.01
    assert len(commands) == 2


def test_remote_ssh_failure_raises_probe_error(monkeypatch):
    def fake_run(cmd, **kwargs):
        return _completed(returncode=255, stderr="ssh: Could not resolve hostname db01")

    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    with pytest.raises(ProbeError) as excinfo:
        RemoteExecutor("db01", command_timeout=10).os_info()

    assert "Could not resolve hostname" in str(excinfo.value)
    assert excinfo.value.host == "db01"


def test_remote_timeout_raises_probe_error(monkeypatch):
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    with pytest.raises(ProbeError) as excinfo:
        RemoteExecutor("db01", command_timeout=3).fixed_disks()

    assert "timed out" in str(excinfo.value)


def test_remote_service_status_quotes_name(monkeypatch):
    seen = []

    def fake_run(cmd, **kwargs):
        seen.append(cmd[-1])
        # systemctl show exits 0 even for unknown units
        return _completed("LoadState=not-found\nActiveState=inactive\n", returncode=0)

    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    status = RemoteExecutor("db01", command_timeout=3).service_status("my svc;rm")

    assert status == "not-found"
    assert seen[0].endswith("-- 'my svc;rm'")


def test_remote_host_name_is_passed_after_end_of_options(monkeypatch):
    seen = []

    def fake_run(cmd, **kwargs):
        seen.append(cmd)
        return _completed("LoadState=loaded\nActiveState=active\n")

    monkeypatch.setattr(targets.subprocess, "run", fake_run)

    RemoteExecutor("db01", command_timeout=3).service_status("sshd")

    cmd = seen[0]
    assert cmd[-3:-1] == ["--", "db01"]
    assert cmd.index("--") > cmd.index("BatchMode=yes")
