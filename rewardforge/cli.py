"""Command line helpers for RewardForge."""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .app import EconomyApp
from .config import RewardForgeConfig
from .diagnostics.checklist import run_checklist as checklist_run
from .diagnostics.curve import curve_table
from .loaders import load_catalog_from_json, validate_catalog_file
from .validators import validate_app

console = Console()

_AXES = ("account", "character", "mastery", "battle_pass")


def run_curve() -> None:
    parser = argparse.ArgumentParser(description="RewardForge leveling curve table")
    parser.add_argument("axis", choices=_AXES, help="Progression axis to print")
    parser.add_argument("--until", type=int, default=None, help="Last level to print")
    args = parser.parse_args()

    config = RewardForgeConfig.from_env()
    curve = getattr(config.leveling.build(), args.axis)

    table = Table(title=f"{args.axis} curve (max level {curve.max_level})")
    table.add_column("Level", justify="right")
    table.add_column("Required exp", justify="right")
    table.add_column("Cumulative exp", justify="right")
    for row in curve_table(curve, until=args.until):
        table.add_row(str(row.level), str(row.required_exp), str(row.cumulative_exp))
    console.print(table)


def run_checklist() -> None:
    parser = argparse.ArgumentParser(description="RewardForge balancing checks")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--catalog", help="Path to catalog JSON file")
    source.add_argument("--module", help="Python module with register(app) function")
    args = parser.parse_args()

    app = _build_app(args.catalog, args.module)
    issues = checklist_run(app)
    if not issues:
        console.print("[bold green]No issues found[/bold green]")
        return
    for issue in issues:
        style = "red" if issue.severity == "error" else "yellow"
        console.print(f"[{style}][{issue.severity.upper()}][/{style}] {issue.message}")
    sys.exit(1)


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="RewardForge validator")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--catalog",
        help="Path to catalog JSON file for validation",
    )
    group.add_argument(
        "--module",
        help="Python module with register(app) function to validate",
    )
    args = parser.parse_args()

    if args.catalog:
        errors = validate_catalog_file(Path(args.catalog))
        if errors:
            _print_errors("Catalog errors:", errors)
            sys.exit(1)
        issues = validate_app(_build_app(args.catalog, None))
    else:
        issues = validate_app(_build_app(None, args.module))
    if issues:
        _print_errors("Configuration errors:", issues)
        sys.exit(1)
    console.print("[bold green]Configuration is valid[/bold green]")


def _print_errors(title: str, errors: list[str]) -> None:
    console.print(f"[bold red]{title}[/bold red]")
    for err in errors:
        console.print(f"- {err}")


def _build_app(catalog: str | None, module: str | None) -> EconomyApp:
    app = EconomyApp(RewardForgeConfig.from_env())
    if catalog:
        load_catalog_from_json(app, Path(catalog))
    if module:
        _load_module(module, app)
    return app


def _load_module(path: str, app: EconomyApp) -> None:
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    module = importlib.import_module(path)
    if hasattr(module, "register"):
        module.register(app)
    else:
        raise RuntimeError(f"Module {path} has no register(app) function.")
