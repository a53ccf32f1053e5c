from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

import typer

from .app import ViewerApp
from .headless import ConsoleStatus, HeadlessLayerFactory, HeadlessMap
from .workflows.activity_log import ActivityLog
from .workflows.address_classifier import is_blocked, matching_rules
from .workflows.admission import validate_url
from .workflows.hostname import normalize_hostname
from .workflows.tilejson_params import AdvancedTileJsonParams
from .workflows.viewer_config import load_viewer_config_from_env

app = typer.Typer(add_help_option=False, no_args_is_help=False)


def _minimal_help() -> str:
    return """mapfetch (admission + load CLI)

Usage:
  mapfetch check <url> [--base <URL>] [--json]
  mapfetch host <hostname> [--json]
  mapfetch load <url> [--timeout <SECONDS>] [--no-recenter] [--assets <LIST>] [--json]

Common options:
  --json          Print a JSON result to stdout only.
  --verbose       Debug logging on stderr.

Discoverability:
  --help-full     Expanded help + env vars.
  --find <query>  Search commands, flags, env vars.
"""


def _help_full() -> str:
    return """mapfetch CLI

Commands:
  check   Run the URL admission gate and print the verdict (exit 2 when rejected).
  host    Show the normalized form of a hostname and the block rules it hits.
  load    Validate, fetch and "render" a TileJSON or STAC URL headlessly.

Exit codes:
  0  accepted / loaded
  2  rejected / failed / timed out
  3  unexpected error

Important env vars:
  MAPFETCH_TIMEOUT          Per-load deadline in seconds (default 10).
  MAPFETCH_BASE_URL         Base for resolving relative URLs.
  MAPFETCH_DEFAULT_URL      URL loaded on startup.
  MAPFETCH_USER_AGENT       User-Agent for resource fetches.
  MAPFETCH_MAX_REDIRECTS    Redirect hops (each re-validated), default 5.
  MAPFETCH_LOG_ENDPOINT     POST error activity entries here (JSON).
  MAPFETCH_LOG_VERBOSE      Log activity-sink delivery problems.
"""


_FIND_INDEX = [
    ("command", "check", "Run the URL admission gate."),
    ("command", "host", "Normalize a hostname and list matching block rules."),
    ("command", "load", "Validate and load a TileJSON or STAC URL headlessly."),
    ("flag", "--base", "Base URL for resolving relative input."),
    ("flag", "--json", "Print JSON to stdout only."),
    ("flag", "--timeout", "Per-load deadline in seconds."),
    ("flag", "--no-recenter", "Do not fit the view to the loaded extent."),
    ("flag", "--assets", "Advanced TileJSON assets list."),
    ("flag", "--verbose", "Debug logging on stderr."),
    ("flag", "--help-full", "Expanded help and env vars."),
    ("flag", "--find", "Search commands, flags, env vars."),
    ("env", "MAPFETCH_TIMEOUT", "Per-load deadline in seconds."),
    ("env", "MAPFETCH_BASE_URL", "Base for relative URLs."),
    ("env", "MAPFETCH_DEFAULT_URL", "URL loaded on startup."),
    ("env", "MAPFETCH_USER_AGENT", "User-Agent for fetches."),
    ("env", "MAPFETCH_MAX_REDIRECTS", "Redirect hops, each re-validated."),
    ("env", "MAPFETCH_LOG_ENDPOINT", "Remote activity log endpoint."),
    ("env", "MAPFETCH_LOG_VERBOSE", "Log activity-sink delivery problems."),
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


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
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


@app.command("check", add_help_option=True)
def check_url(
    url: str = typer.Argument(..., help="URL to validate."),
    base: Optional[str] = typer.Option(None, "--base", help="Base URL for resolving relative input."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout only."),
) -> None:
    """Run the URL admission gate."""
    config = load_viewer_config_from_env()
    result = validate_url(url, base or config.base_context)
    if json_out:
        payload = asdict(result)
        payload["reason"] = result.reason.value if result.reason else None
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    elif result.valid:
        typer.echo(f"accepted: {result.normalized_url}")
    else:
        reason = result.reason.value if result.reason else "rejected"
        typer.echo(f"rejected ({reason}): {result.error}")
    raise typer.Exit(code=0 if result.valid else 2)


@app.command("host", add_help_option=True)
def host_info(
    hostname: str = typer.Argument(..., help="Hostname or address literal."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout only."),
) -> None:
    """Normalize a hostname and list matching block rules."""
    normalized = normalize_hostname(hostname)
    rules = matching_rules(normalized)
    blocked = is_blocked(normalized)
    if json_out:
        payload = {
            "input": hostname,
            "normalized": normalized,
            "blocked": blocked,
            "rules": [asdict(rule) for rule in rules],
        }
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    else:
        typer.echo(f"normalized: {normalized}")
        typer.echo(f"blocked: {'yes' if blocked else 'no'}")
        for rule in rules:
            typer.echo(f"  {rule.family} {rule.match} {rule.pattern} ({rule.category})")
    raise typer.Exit(code=0)


@app.command("load", add_help_option=True)
def load_url(
    url: str = typer.Argument(..., help="TileJSON or STAC URL to load."),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0.001, help="Per-load deadline in seconds."),
    no_recenter: bool = typer.Option(False, "--no-recenter", help="Do not fit the view to the loaded extent."),
    assets: str = typer.Option("", "--assets", help="Advanced TileJSON assets list."),
    json_out: bool = typer.Option(False, "--json", help="Print JSON to stdout only."),
) -> None:
    """Validate and load a TileJSON or STAC URL headlessly."""
    config = load_viewer_config_from_env()
    if timeout is not None:
        config.timeout = timeout
    activity = ActivityLog(config.log_endpoint, verbose=config.log_verbose, user_agent=config.user_agent)
    map_layer = HeadlessMap()
    viewer = ViewerApp(
        map_layer,
        ConsoleStatus(quiet=json_out),
        HeadlessLayerFactory(),
        activity=activity,
        config=config,
    )

    async def _run():
        outcome = await viewer.load_data(url, recenter=not no_recenter, advanced=AdvancedTileJsonParams(assets=assets))
        await activity.flush()
        return outcome

    try:
        outcome = asyncio.run(_run())
    except Exception as exc:
        if not json_out:
            typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)
    if json_out:
        payload = outcome.to_dict()
        payload["extent"] = map_layer.fitted[-1] if map_layer.fitted else None
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    raise typer.Exit(code=0 if outcome.ok else 2)
