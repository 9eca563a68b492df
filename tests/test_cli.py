import json
from pathlib import Path

from aiohttp import test_utils
from typer.testing import CliRunner

from siteaudit import cli
from siteaudit.runner import AuditRun

runner = CliRunner()


def test_no_args_prints_minimal_help() -> None:
    result = runner.invoke(cli.app, [])
    assert result.exit_code == 0
    assert "siteaudit audit" in result.output
    assert "Exit codes" in result.output


def test_help_full_lists_env_vars() -> None:
    result = runner.invoke(cli.app, ["--help-full"])
    assert result.exit_code == 0
    assert "SEO_AUDIT_BASE_URL" in result.output
    assert "SEO_MIN_INFO_POINTS" in result.output


def test_find_searches_index() -> None:
    result = runner.invoke(cli.app, ["--find", "redirect"])
    assert result.exit_code == 0
    assert "flag --max-redirects" in result.output
    assert "env SEO_AUDIT_MAX_REDIRECTS" in result.output
    assert "doctor" not in result.output


def test_audit_exit_code_follows_verdict(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    seen = {}

    def fake_run_audit(config):
        seen["config"] = config
        report = {"hard_fail": True, "hard_fail_categories": ["non200"], "counts": {"crawled": 3}}
        return AuditRun(report=report, json_path=tmp_path / "r.json", md_path=tmp_path / "r.md")

    monkeypatch.setattr(cli, "run_audit", fake_run_audit)
    result = runner.invoke(
        cli.app,
        ["audit", "--base-url", "http://localhost:4000", "--concurrency", "2", "--timeout-ms", "500", "--json"],
    )

    assert result.exit_code == 1
    payload = json.loads(result.output.strip().splitlines()[-1])
    assert payload["hard_fail"] is True
    assert payload["hard_fail_categories"] == ["non200"]
    config = seen["config"]
    assert config.base_url == "http://localhost:4000"
    assert config.concurrency == 2
    assert config.timeout == 0.5


def test_audit_ok_exits_zero(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        cli,
        "run_audit",
        lambda config: AuditRun(report={"hard_fail": False}, json_path=tmp_path / "r.json", md_path=tmp_path / "r.md"),
    )
    result = runner.invoke(cli.app, ["audit"])
    assert result.exit_code == 0
    assert "SEO audit OK (hard requirements met)." in result.output


def test_audit_without_sitemap_is_fatal(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    base_url = f"http://127.0.0.1:{test_utils.unused_port()}"
    result = runner.invoke(
        cli.app,
        ["audit", "--base-url", base_url, "--timeout-ms", "2000", "--reports-dir", str(tmp_path / "reports")],
    )
    assert result.exit_code == 3
    assert "fatal:" in result.output
    assert not (tmp_path / "reports").exists()


def test_batch_plan_without_report(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SEO_AUDIT_REPORTS_DIR", str(tmp_path / "reports"))
    result = runner.invoke(cli.app, ["batch-plan"])
    assert result.exit_code == 2
    assert "no audit report found" in result.output


def test_doctor_prints_configuration(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SEO_AUDIT_BASE_URL", "https://example.com")
    monkeypatch.setenv("SEO_AUDIT_REPORTS_DIR", str(tmp_path))
    result = runner.invoke(cli.app, ["doctor"])
    assert result.exit_code == 0
    assert "Site audit doctor" in result.output
    assert "- base_url: https://example.com" in result.output
