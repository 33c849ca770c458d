"""
Guide Registry - Command Line Consumer

Local consumer of the guide registry. Every command goes through the same
registry entry point as the HTTP integration, so both resolve identical
guide sets from the same manifest.

Commands:
- validate: Check the manifest against the resource store (CI, exit-code bearing)
- resolve:  Print the ordered guide list for a set of detection facts
- show:     Summarize the manifest (categories, disabled entries, detectors)
- verify:   Compare a resolved set produced by another consumer

Exit codes: 0 success, 1 discrepancies / drift, 2 manifest or input error.

Usage:
    python -m service.main validate --manifest guides/manifest.json
    python -m service.main resolve --fact fireTvPatternsPresent=true --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from registry import (
    GuideRegistry,
    ManifestParseError,
    ResolvedSet,
    get_registry,
    list_detectors,
)
from service.config import Settings, get_settings

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_ERROR = 2

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class CliInputError(Exception):
    """Raised for malformed command line input (facts, expected files)."""


# =============================================================================
# Helpers
# =============================================================================

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_registry(args: argparse.Namespace, settings: Settings) -> GuideRegistry:
    """Configure the process-wide registry from settings and CLI overrides."""
    options = settings.registry_options()
    if args.manifest:
        options["manifest_path"] = Path(args.manifest)
        if not settings.resource_root:
            options["resource_root"] = Path(args.manifest).parent
    if args.root:
        options["resource_root"] = Path(args.root)

    registry = get_registry(reload=True, **options)
    registry.load_file()
    return registry


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise CliInputError(f"Not a boolean: '{value}'")


def load_facts(facts_file: Optional[str], fact_args: Optional[List[str]]) -> Dict[str, bool]:
    """Merge facts from a JSON file (or '-' for stdin) and NAME=BOOL arguments."""
    facts: Dict[str, bool] = {}

    if facts_file:
        try:
            text = sys.stdin.read() if facts_file == "-" else Path(facts_file).read_text(encoding="utf-8")
            data = json.loads(text)
        except OSError as e:
            raise CliInputError(f"Cannot read facts file: {e}")
        except json.JSONDecodeError as e:
            raise CliInputError(f"Facts file is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise CliInputError("Facts file must contain a JSON object")
        for name, value in data.items():
            if not isinstance(value, bool):
                raise CliInputError(f"Fact '{name}' must be true or false")
            facts[name] = value

    for item in fact_args or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise CliInputError(f"Expected NAME=true|false, got '{item}'")
        facts[name.strip()] = parse_bool(value)

    return facts


def write_json(data) -> None:
    sys.stdout.write(json.dumps(data, indent=2, sort_keys=True) + "\n")


# =============================================================================
# Commands
# =============================================================================

def cmd_validate(args: argparse.Namespace, registry: GuideRegistry) -> int:
    report = registry.validate()

    if args.json:
        write_json(report.to_dict())
        return report.exit_code

    if report.ok:
        console.print(f"[green]OK[/green] {len(registry.manifest)} entries match {report.resource_root}")
        return report.exit_code

    table = Table(title="Manifest drift", show_header=True)
    table.add_column("Kind", style="red")
    table.add_column("Identifier", style="cyan")
    table.add_column("Category", style="dim")
    table.add_column("Details")
    for record in report:
        table.add_row(record.kind.value, record.identifier, record.category or "-", record.message)
    console.print(table)

    counts = report.counts()
    console.print(
        f"[red]{len(report)} discrepancies[/red] "
        f"(missing={counts['missing']}, orphaned={counts['orphaned']}, duplicate={counts['duplicate']})"
    )
    return report.exit_code


def cmd_resolve(args: argparse.Namespace, registry: GuideRegistry) -> int:
    facts = load_facts(args.facts, args.fact)
    resolved = registry.resolve(facts)

    unknown = registry.cache.resolver.engine.unknown_detectors(registry.manifest, facts)
    if unknown:
        logger.info(f"Detectors without facts (treated as unmet): {', '.join(unknown)}")

    if args.json:
        sys.stdout.write(resolved.to_json().decode("ascii") + "\n")
        return EXIT_OK

    for identifier in resolved:
        console.print(identifier, highlight=False, markup=False)
    return EXIT_OK


def cmd_show(args: argparse.Namespace, registry: GuideRegistry) -> int:
    manifest = registry.manifest
    summary = manifest.summary()

    if args.json:
        write_json(summary)
        return EXIT_OK

    console.print(Panel.fit(
        f"[bold cyan]{manifest.source}[/bold cyan]\n"
        f"[dim]checksum {manifest.checksum[:16]}[/dim]\n"
        f"{summary['total_entries']} entries, "
        f"{summary['disabled_entries']} disabled, "
        f"{summary['conditional_entries']} conditional",
        border_style="cyan"
    ))

    table = Table(title="Categories", show_header=True)
    table.add_column("Category", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Disabled", justify="right", style="yellow")
    table.add_column("Conditional", justify="right", style="magenta")
    for category in manifest.categories:
        table.add_row(
            category.name,
            str(len(category)),
            str(sum(1 for e in category if e.disabled)),
            str(sum(1 for e in category if e.is_conditional)),
        )
    console.print(table)

    if summary["detectors"]:
        known = set(list_detectors())
        detectors = ", ".join(
            d if d in known else f"{d} [dim](uncatalogued)[/dim]" for d in summary["detectors"]
        )
        console.print(f"Detectors: {detectors}")
    return EXIT_OK


def cmd_verify(args: argparse.Namespace, registry: GuideRegistry) -> int:
    try:
        data = json.loads(Path(args.expected).read_text(encoding="utf-8"))
        expected = ResolvedSet.from_dict(data)
    except OSError as e:
        raise CliInputError(f"Cannot read expected resolved set: {e}")
    except (json.JSONDecodeError, ValueError, AttributeError) as e:
        raise CliInputError(f"Invalid resolved set: {e}")

    facts = load_facts(args.facts, args.fact)
    result = registry.verify(expected, facts)

    if args.json:
        write_json(result.to_dict())
    elif result.consistent:
        console.print("[green]Consistent[/green]")
    else:
        console.print(f"[red]Inconsistent[/red]: {result.status.value}")
        for identifier in result.missing:
            console.print(f"  missing    {identifier}", highlight=False, markup=False)
        for identifier in result.unexpected:
            console.print(f"  unexpected {identifier}", highlight=False, markup=False)
        if result.checksum_mismatch:
            console.print("  manifest checksum differs")
        if result.fingerprint_mismatch:
            console.print("  detection facts differ")

    return EXIT_OK if result.consistent else EXIT_DRIFT


COMMANDS = {
    "validate": cmd_validate,
    "resolve": cmd_resolve,
    "show": cmd_show,
    "verify": cmd_verify,
}


# =============================================================================
# Entry point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guide-registry",
        description="Resolve and validate guide bundles from the registry manifest.",
    )
    parser.add_argument("--manifest", help="Manifest file (default from settings)")
    parser.add_argument("--root", help="Resource directory (default: manifest directory)")
    parser.add_argument("--log-level", help="Logging level (default from settings)")

    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Check manifest against the resource store")
    p_validate.add_argument("--json", action="store_true", help="Machine-readable report")

    p_resolve = sub.add_parser("resolve", help="Print the resolved guide list")
    p_show = sub.add_parser("show", help="Summarize the manifest")
    p_show.add_argument("--json", action="store_true")

    p_verify = sub.add_parser("verify", help="Compare another consumer's resolved set")
    p_verify.add_argument("--expected", required=True, help="ResolvedSet JSON file")

    for p in (p_resolve, p_verify):
        p.add_argument("--facts", help="JSON object of detection facts ('-' for stdin)")
        p.add_argument(
            "--fact",
            action="append",
            metavar="NAME=BOOL",
            help="Single detection fact, repeatable",
        )
        p.add_argument("--json", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)

    try:
        registry = build_registry(args, settings)
        return COMMANDS[args.command](args, registry)
    except ManifestParseError as e:
        err_console.print(f"[red]Manifest error:[/red] {e}", highlight=False)
        return EXIT_ERROR
    except CliInputError as e:
        err_console.print(f"[red]Input error:[/red] {e}", highlight=False)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
