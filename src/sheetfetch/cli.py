from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from .runner import exit_code_for, run_batch, write_summary
from .settings import LOG_LEVELS, SettingsError, configure_logging, load_run_settings
from .workflows.doctor import build_doctor_report, format_doctor_report

EXIT_CONFIG = 2
EXIT_FATAL = 3

app = typer.Typer(
    add_completion=False,
    help="Download today's worksheet PDF for every grade and subject.",
)

USAGE = """\
Usage: sheetfetch [--help-full | --doctor] COMMAND [OPTIONS]

Commands:
  run      Sign in and download the selected sheet for every grade/subject.
  doctor   Check credentials, browser support and the download directory.

See `sheetfetch COMMAND --help` for options and `--help-full` for details.
"""

FULL_HELP = """\
sheetfetch signs in, walks every grade/subject filter and saves the sheet chosen
by the working-day index as a PDF.

Per sheet, the first technique that yields a valid PDF wins:
  direct_replay     POST the download form through the browser session
  native_event      click the download button, catch the browser download
  viewer            inline PDF viewer save control, then Ctrl/Cmd+S
  resource_url      GET an embedded or linked PDF URL with session cookies
  http_replication  POST the hidden form fields outside the browser

Output:
  <out>/<YYYY-MM-DD>/<grade>-<subject>-<YYYY-MM-DD>[-<id>].pdf
  <out>/run_summary.json

Environment (a .env file is read too):
  USERNAME1, PASSWORD, LOGIN_URL   required
  DOWNLOAD_DIR                     default ./downloads
  LOG_LEVEL                        off|silent|error|warn|info|debug (default info)
  DEBUG                            true or 1 forces debug
  SHEETFETCH_BASE_DATE             working-day base date (default 2025-09-10)
  SHEETFETCH_HEADLESS              0 shows the browser
  SHEETFETCH_SLOW_MO_MS            delay between browser actions (default 10)

Exit codes: 0 all downloaded, 1 some failed or skipped, 2 configuration, 3 fatal.
"""


def _doctor_exit() -> int:
    report = build_doctor_report()
    typer.echo(format_doctor_report(report))
    return 0 if report["ok"] else EXIT_CONFIG


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Explain strategies, output and environment."),
    doctor: bool = typer.Option(False, "--doctor", is_eager=True, help="Check the environment and exit."),
) -> None:
    if help_full:
        typer.echo(FULL_HELP)
        raise typer.Exit()
    if doctor:
        raise typer.Exit(code=_doctor_exit())
    if ctx.invoked_subcommand is None:
        typer.echo(USAGE)
        raise typer.Exit()


@app.command("doctor")
def doctor_cmd() -> None:
    """Check credentials, browser support and the download directory."""
    raise typer.Exit(code=_doctor_exit())


def _check_level(value: Optional[str]) -> Optional[str]:
    if value is not None and value.lower() not in LOG_LEVELS:
        raise typer.BadParameter(f"expected one of {', '.join(sorted(LOG_LEVELS))}")
    return value.lower() if value else value


@app.command("run")
def run_cmd(
    out: Optional[Path] = typer.Option(None, "--out", help="Download root (default DOWNLOAD_DIR)."),
    json_out: bool = typer.Option(False, "--json", help="Also print the run summary as JSON."),
    soft_fail: bool = typer.Option(False, "--soft-fail", help="Exit 0 even when items fail."),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window."),
    log_level: Optional[str] = typer.Option(None, "--log-level", callback=_check_level, help="Override LOG_LEVEL."),
) -> None:
    """Sign in and download the selected sheet for every grade/subject."""
    try:
        settings = load_run_settings()
    except SettingsError as exc:
        typer.echo(f"config error: {exc}", err=True)
        raise typer.Exit(code=EXIT_CONFIG)
    if log_level:
        settings = replace(settings, log_level=log_level)
    if headed:
        settings = replace(settings, headless=False)
    log = configure_logging(settings.log_level)
    if settings.is_placeholder:
        log.warning("USERNAME1 is still the example account; set real credentials first")
        raise typer.Exit(code=EXIT_CONFIG)

    out_dir = out or settings.download_dir
    try:
        summary = asyncio.run(run_batch(settings, out_dir=out_dir))
    except Exception as exc:
        log.error("Run aborted: %s", exc)
        raise typer.Exit(code=EXIT_FATAL)
    summary_path = write_summary(summary, out_dir)
    log.info("Summary written to %s", summary_path)
    if json_out:
        typer.echo(json.dumps(summary, ensure_ascii=False))
    raise typer.Exit(code=exit_code_for(summary, soft_fail=soft_fail))
