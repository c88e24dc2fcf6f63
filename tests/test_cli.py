import json
from datetime import datetime, timezone

import pytest

from hostreport import cli
from hostreport.models.host import CollectionReport, HostResult


def _fake_collect(settings):
    now = datetime.now(timezone.utc)
    return CollectionReport(
        title=settings.report_title,
        generated_at=now,
        warn_pct=settings.warn_pct,
        crit_pct=settings.crit_pct,
        hosts=[HostResult.failed_result(host, "unreachable", now) for host in settings.hosts],
    )


def test_missing_config_fails_before_probing(monkeypatch, tmp_path, capsys):
    def fail_collect(settings):
        raise AssertionError("must not probe with a broken configuration")

    monkeypatch.setattr(cli, "collect", fail_collect)

    exit_code = cli.main(["--config", str(tmp_path / "missing.yaml")])

    assert exit_code == cli.EXIT_CONFIG_ERROR
    assert "not found" in capsys.readouterr().err
    assert list(tmp_path.iterdir()) == []


def test_uncreatable_output_dir_fails(monkeypatch, tmp_path, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory", encoding="utf-8")
    config_file = tmp_path / "host-report.yaml"
    config_file.write_text("hosts: [localhost]\n", encoding="utf-8")

    monkeypatch.setattr(cli, "collect", _fake_collect)

    exit_code = cli.main(
        ["--config", str(config_file), "--output-dir", str(blocker / "reports")]
    )

    assert exit_code == cli.EXIT_CONFIG_ERROR
    assert "Cannot create output directory" in capsys.readouterr().err


def test_run_with_failed_hosts_still_succeeds(monkeypatch, tmp_path):
    config_file = tmp_path / "host-report.yaml"
    config_file.write_text(
        "hosts: [offline01, offline02]\noutput_dir: out\nlog_file: run.log\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(cli, "collect", _fake_collect)

    exit_code = cli.main(["--config", str(config_file)])

    assert exit_code == cli.EXIT_OK
    written = sorted(p.suffix for p in (tmp_path / "out").iterdir())
    assert written == [".csv", ".html", ".json"]

    json_file = next((tmp_path / "out").glob("*.json"))
    data = json.loads(json_file.read_text(encoding="utf-8"))
    assert [h["host"] for h in data["hosts"]] == ["offline01", "offline02"]

    log_text = (tmp_path / "run.log").read_text(encoding="utf-8")
    assert "Run started" in log_text
    assert "Run completed: 2 host(s), 2 failed" in log_text
    assert str(json_file) in log_text


def test_format_option(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "collect", _fake_collect)
    monkeypatch.delenv("HOSTREPORT_CONFIG", raising=False)
    monkeypatch.setenv("HOSTREPORT_HOSTS", "offline01")

    exit_code = cli.main(["--output-dir", str(tmp_path), "--format", "csv"])

    assert exit_code == cli.EXIT_OK
    assert [p.suffix for p in tmp_path.iterdir()] == [".csv"]


def test_unknown_format_is_rejected():
    with pytest.raises(SystemExit):
        cli.parse_args(["--format", "pdf"])


def test_config_file_from_environment_is_used(monkeypatch, tmp_path):
    config_file = tmp_path / "host-report.yaml"
    config_file.write_text("hosts: [offline01]\noutput_dir: from-env\n", encoding="utf-8")
    monkeypatch.setenv("HOSTREPORT_CONFIG", str(config_file))
    monkeypatch.setenv("HOSTREPORT_OUTPUT_DIR", str(tmp_path / "ignored"))
    monkeypatch.setattr(cli, "collect", _fake_collect)

    exit_code = cli.main(["--format", "json"])

    assert exit_code == cli.EXIT_OK
    assert [p.suffix for p in (tmp_path / "from-env").iterdir()] == [".json"]
    assert not (tmp_path / "ignored").exists()


def test_explicit_config_wins_over_environment(monkeypatch, tmp_path):
    env_file = tmp_path / "env.yaml"
    env_file.write_text("output_dir: env-out\n", encoding="utf-8")
    cli_file = tmp_path / "cli.yaml"
    cli_file.write_text("hosts: [offline01]\noutput_dir: cli-out\n", encoding="utf-8")
    monkeypatch.setenv("HOSTREPORT_CONFIG", str(env_file))
    monkeypatch.setattr(cli, "collect", _fake_collect)

    exit_code = cli.main(["--config", str(cli_file), "--format", "csv"])

    assert exit_code == cli.EXIT_OK
    assert (tmp_path / "cli-out").is_dir()
    assert not (tmp_path / "env-out").exists()
