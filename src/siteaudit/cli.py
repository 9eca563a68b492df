from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from dotenv import find_dotenv, load_dotenv

from .runner import run_audit
from .workflows.audit_config import ENV_VARS, AuditConfig
from .workflows.batches import latest_report, load_report, plan_batch, snapshot_batch
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.sitemap import SitemapError

app = typer.Typer(add_help_option=False, no_args_is_help=False)

logger = logging.getLogger(__name__)


def _minimal_help() -> str:
    return """Site audit

Usage:
  siteaudit audit [--base-url <URL>] [--preferred-url <URL>] [--json] [--verbose]
  siteaudit batch-plan [--audit <REPORT>] [--batch <ID>] [--out <DIR>]
  siteaudit batch-snapshot --batch-dir <DIR> --audit <REPORT> [--name <NAME>]
  siteaudit doctor

Exit codes (audit):
  0  no hard-fail issue category is non-empty
  1  hard-fail issues found (report still written)
  3  fatal: sitemap unavailable or reports dir not writable

Discoverability:
  --help-full     Expanded help + env vars + artifacts.
  --find <query>  Search commands, flags, env vars, artifacts.
"""


def _help_full() -> str:
    env_lines = "\n".join(f"  {name:<28}{desc}" for name, desc in ENV_VARS)
    return f"""Site audit CLI

Commands:
  audit           Crawl the sitemap + seed pages and classify SEO issues.
  batch-plan      Pick a focused batch of URLs from the latest audit report.
  batch-snapshot  Snapshot a batch against a newer report and diff it.
  doctor          Print parser checks and the effective configuration.

Audit overrides (flags win over env vars):
  --base-url --preferred-url --concurrency --timeout-ms --max-redirects
  --max-pages --min-words --min-info-points --reports-dir

Hard-fail categories:
  non200 duplicateTitle duplicateDescription canonicalMismatch
  noindexInSitemap veryShort

Env vars (a .env file in the working directory is honoured):
{env_lines}

Artifacts:
  reports/seo-audit-<host>-<stamp>.json   Full report (pages, issues, counts).
  reports/seo-audit-<host>-<stamp>.md     Condensed per-category summary.
  reports/batches/batch-<id>/             plan.json, before.json, plan.md,
                                          <name>.json, changes.json
"""


_FIND_INDEX = [
    ("command", "audit", "Crawl and classify SEO issues."),
    ("command", "batch-plan", "Pick a batch of URLs from an audit report."),
    ("command", "batch-snapshot", "Snapshot a batch and diff it against before.json."),
    ("command", "doctor", "Print parser checks and effective configuration."),
    ("flag", "--base-url", "Origin to crawl."),
    ("flag", "--preferred-url", "Preferred canonical origin."),
    ("flag", "--concurrency", "Concurrent fetch workers."),
    ("flag", "--timeout-ms", "Per-request timeout in milliseconds."),
    ("flag", "--max-redirects", "Redirect hop budget per target."),
    ("flag", "--max-pages", "Cap on the number of targets."),
    ("flag", "--min-words", "Thin-content word floor."),
    ("flag", "--min-info-points", "Thin-content information-point floor."),
    ("flag", "--reports-dir", "Directory for report artifacts."),
    ("flag", "--json", "Print the run summary as JSON to stdout."),
    ("flag", "--verbose", "Debug logging."),
    ("flag", "--help-full", "Expanded help, env vars, artifacts."),
    ("flag", "--find", "Search commands, flags, env vars, artifacts."),
    *[("env", name, desc) for name, desc in ENV_VARS],
    ("artifact", "seo-audit-<host>-<stamp>.json", "Full report."),
    ("artifact", "seo-audit-<host>-<stamp>.md", "Condensed summary."),
    ("artifact", "plan.json", "Batch plan."),
    ("artifact", "changes.json", "Batch field changes."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else (logging.WARNING if quiet else logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")


def _build_config(**overrides: Any) -> AuditConfig:
    config = AuditConfig.from_env()
    changes: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    return dataclasses.replace(config, **changes) if changes else config


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars, artifacts."),
) -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("audit", add_help_option=True)
def audit_cmd(
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Origin to crawl."),
    preferred_url: Optional[str] = typer.Option(None, "--preferred-url", help="Preferred canonical origin."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Concurrent fetch workers."),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", help="Per-request timeout in milliseconds."),
    max_redirects: Optional[int] = typer.Option(None, "--max-redirects", help="Redirect hop budget per target."),
    max_pages: Optional[int] = typer.Option(None, "--max-pages", help="Cap on the number of targets."),
    min_words: Optional[int] = typer.Option(None, "--min-words", help="Thin-content word floor."),
    min_info_points: Optional[int] = typer.Option(None, "--min-info-points", help="Thin-content information-point floor."),
    reports_dir: Optional[Path] = typer.Option(None, "--reports-dir", help="Directory for report artifacts."),
    json_out: bool = typer.Option(False, "--json", help="Print the run summary as JSON to stdout."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    _configure_logging(verbose, quiet=json_out)
    config = _build_config(
        base_url=base_url,
        preferred_site_url=preferred_url,
        concurrency=concurrency,
        timeout=timeout_ms / 1000.0 if timeout_ms is not None else None,
        max_redirects=max_redirects,
        max_pages=max_pages,
        very_short_words=min_words,
        min_info_points=min_info_points,
        reports_dir=str(reports_dir) if reports_dir is not None else None,
    )
    logger.info("auditing %s (preferred origin %s)", config.base_url, config.preferred_origin)
    try:
        run = run_audit(config)
    except SitemapError as exc:
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)
    except RuntimeError as exc:
        # write_report: reports dir could not be created
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)

    if json_out:
        summary = {
            "hard_fail": run.hard_fail,
            "hard_fail_categories": run.report.get("hard_fail_categories", []),
            "counts": run.report.get("counts", {}),
            "json_path": str(run.json_path),
            "md_path": str(run.md_path),
        }
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    elif run.hard_fail:
        typer.echo("SEO audit failed hard requirements.", err=True)
        typer.echo(f"Report: {run.json_path}", err=True)
        typer.echo(f"Report: {run.md_path}", err=True)
    else:
        typer.echo("SEO audit OK (hard requirements met).")
        typer.echo(f"Report: {run.json_path}")
        typer.echo(f"Report: {run.md_path}")
    raise typer.Exit(code=run.exit_code)


@app.command("doctor", add_help_option=True)
def doctor_cmd() -> None:
    """Print parser checks and the effective configuration."""
    report = build_doctor_report(_build_config())
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


@app.command("batch-plan", add_help_option=True)
def batch_plan_cmd(
    audit: Optional[Path] = typer.Option(None, "--audit", help="Audit report JSON (default: newest in reports dir)."),
    batch: str = typer.Option("001", "--batch", help="Batch identifier."),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory for the batch files."),
) -> None:
    config = _build_config()
    reports_dir = Path(config.reports_dir)
    audit_path = audit or latest_report(reports_dir)
    if audit_path is None:
        typer.echo("error: no audit report found; run `siteaudit audit` first.", err=True)
        raise typer.Exit(code=2)
    try:
        report = load_report(audit_path)
    except (OSError, ValueError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)
    out_dir = out or reports_dir / "batches" / f"batch-{batch}"
    plan = plan_batch(report, audit_path, out_dir, batch_id=batch)
    if plan is None:
        typer.echo("No issues found to batch.")
        raise typer.Exit(code=0)
    for name in ("plan.json", "before.json", "plan.md"):
        typer.echo(f"Wrote: {out_dir / name}")


@app.command("batch-snapshot", add_help_option=True)
def batch_snapshot_cmd(
    batch_dir: Path = typer.Option(..., "--batch-dir", help="Batch directory containing plan.json."),
    audit: Path = typer.Option(..., "--audit", help="Audit report JSON to snapshot from."),
    name: str = typer.Option("after", "--name", help="Snapshot file name (without .json)."),
) -> None:
    try:
        report = load_report(audit)
        snapshot_path, changes_path = snapshot_batch(batch_dir, report, name=name)
    except (OSError, ValueError) as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"Wrote: {snapshot_path}")
    typer.echo(f"Wrote: {changes_path}")
