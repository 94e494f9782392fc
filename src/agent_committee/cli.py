from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import config
from .committee import run_committee
from .credentials import ENV_VARS, PROVIDERS, Credentials, get_credentials
from .errors import CommitteeError
from .formatting import format_error, result_as_dict
from .presets import get_catalog
from .types import CommitteeResult
from .validation import validate_committee_args


@dataclass
class CheckResult:
    label: str
    ok: bool
    detail: str


def _check_import(module: str) -> CheckResult:
    try:
        importlib.import_module(module)
        return CheckResult(label=f"import {module}", ok=True, detail="available")
    except ImportError as exc:
        return CheckResult(label=f"import {module}", ok=False, detail=f"{exc.__class__.__name__}: {exc}")


def _check_provider(credentials: Credentials, provider: str) -> CheckResult:
    var = ENV_VARS[provider]
    if credentials.is_available(provider):
        return CheckResult(label=var, ok=True, detail="set")
    return CheckResult(label=var, ok=False, detail="not set")


def _check_presets() -> CheckResult:
    try:
        presets = get_catalog().available_presets()
    except CommitteeError as exc:
        return CheckResult(label="presets", ok=False, detail=exc.message)
    return CheckResult(label="presets", ok=True, detail=", ".join(presets))


def collect_checks(credentials: Credentials) -> List[CheckResult]:
    results = [_check_import(m) for m in ("httpx", "fastapi", "uvicorn", "mcp")]
    results += [_check_provider(credentials, p) for p in PROVIDERS]
    results.append(_check_presets())
    return results


def _print_checks(console: Console, results: List[CheckResult], credentials: Credentials) -> bool:
    table = Table(title="Environment")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail")
    for result in results:
        status = "[green]OK[/green]" if result.ok else "[yellow]MISSING[/yellow]"
        table.add_row(result.label, status, escape(result.detail))
    console.print(table)

    imports_ok = all(r.ok for r in results if r.label.startswith("import ") or r.label == "presets")
    if credentials.is_fallback_mode():
        console.print("No provider keys configured: committee runs in fallback mode")
    else:
        console.print(f"Default provider: {credentials.default_provider()}")
    console.print("Ready" if imports_ok else "Missing Dependencies")
    return imports_ok


def _print_result(console: Console, result: CommitteeResult) -> None:
    table = Table(title=f"Committee ({result.preset})")
    table.add_column("Agent")
    table.add_column("Role")
    table.add_column("Status")
    table.add_column("Output", overflow="fold")
    for task, res in zip(result.tasks, result.results):
        if res.success:
            table.add_row(escape(task.name), escape(task.role), "[green]ok[/green]", escape((res.output or "")[:200]))
        else:
            table.add_row(escape(task.name), escape(task.role), f"[red]{res.error_kind}[/red]", escape(res.error or ""))
    console.print(table)

    synthesis = result.synthesis
    body = synthesis.synthesis
    if synthesis.recommendations:
        body += "\n\n" + "\n".join(f"{i}. {r}" for i, r in enumerate(synthesis.recommendations, start=1))
    title = f"Synthesis - {synthesis.method.value} - winner: {synthesis.winner}"
    console.print(Panel(Text(body), title=escape(title)))
    console.print(
        f"{result.successful_agents}/{result.total_agents} agents succeeded in {result.duration_ms / 1000:.1f}s"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="agent-committee")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (stderr)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the committee on a request")
    run_parser.add_argument("request", help="User request")
    run_parser.add_argument("--context", default=None, help="Extra context for every agent")
    run_parser.add_argument("--preset", default=None, help="Agent preset")
    run_parser.add_argument("--provider", default=None, choices=PROVIDERS)
    run_parser.add_argument("--model", default=None)
    run_parser.add_argument("--aggregator-provider", default=None, choices=PROVIDERS)
    run_parser.add_argument("--aggregator-model", default=None)
    run_parser.add_argument("--timeout-ms", type=int, default=None, help="Per-agent deadline")
    run_parser.add_argument("--json", action="store_true", help="Print the structured result as JSON")

    subparsers.add_parser("presets", help="List available presets")
    subparsers.add_parser("check-env", help="Check dependencies and provider keys")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=config.LOG_FORMAT, stream=sys.stderr)
    console = Console()

    if args.command == "presets":
        catalog = get_catalog()
        table = Table(title="Presets")
        table.add_column("Key")
        table.add_column("Name")
        table.add_column("Agents")
        for key in catalog.available_presets():
            info = catalog.preset_info(key)
            table.add_row(key, info["name"], ", ".join(a["name"] for a in info["agents"]))
        console.print(table)
        return 0

    if args.command == "check-env":
        credentials = get_credentials()
        ok = _print_checks(console, collect_checks(credentials), credentials)
        return 0 if ok else 1

    if args.command == "run":
        raw = {
            "request": args.request,
            "context": args.context,
            "preset": args.preset,
            "provider": args.provider,
            "model": args.model,
            "aggregator_provider": args.aggregator_provider,
            "aggregator_model": args.aggregator_model,
            "timeout_ms": args.timeout_ms,
        }
        try:
            req = validate_committee_args(raw, presets=get_catalog().available_presets())
            result = asyncio.run(run_committee(req))
        except CommitteeError as exc:
            Console(stderr=True).print(format_error(exc), markup=False)
            return 2
        if args.json:
            print(json.dumps(result_as_dict(result), indent=2))
        else:
            _print_result(console, result)
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
