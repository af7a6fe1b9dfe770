#!/usr/bin/env python3
"""
main.py – multi-jdk launcher
============================
Entry point: finds the installed JDKs, picks the one matching the requested
major version (asking when several match) and runs the JAR with it.

Usage:
    multijdk -v 17 -j app.jar [-a=-Xmx512m]... [-p PARAM]... [-- PARAM...]
    multijdk --list [--json]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from java_manager import JavaRegistry, JavaScanner
from jar_runner import JarRunner, LaunchRequest, SpawnFailure
from jdk_selector import JdkChooser, JdkSelector, NoMatchingVersion, SelectionCancelled
from settings_manager import SettingsManager, default_settings_path

logger = logging.getLogger("multijdk")

# ──────────────────────────────────────────────
#  Exit codes
# ──────────────────────────────────────────────

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_NO_MATCHING_VERSION = 3
EXIT_SELECTION_CANCELLED = 4
EXIT_INTERRUPTED = 130
EXIT_SPAWN_FAILURE = 127

LOG_FILENAME = "multijdk.log"


# ──────────────────────────────────────────────
#  Logging
# ──────────────────────────────────────────────

def setup_logging(log_dir: Path, debug: bool = False) -> None:
    """
    Log everything to <log_dir>/multijdk.log and warnings to stderr.

    stdout is never used: it carries the JAR's own output.
    """
    if logging.getLogger().handlers:
        return

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.WARNING)
    handlers: List[logging.Handler] = [console]

    file_error: Optional[OSError] = None
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILENAME, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)
    except OSError as exc:
        file_error = exc

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    if file_error is not None:
        logger.warning("File logging disabled: %s", file_error)


# ──────────────────────────────────────────────
#  CLI
# ──────────────────────────────────────────────

def positive_int(value: str) -> int:
    if not value.isdigit() or int(value) <= 0:
        raise argparse.ArgumentTypeError("JDK version must be a positive number")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="multijdk",
        description="☕  Run a JAR with the installed JDK of a given major version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "JVM arguments that start with '-' must be attached: -a=-Xmx512m\n"
            "Everything after '--' is passed to the JAR."
        ),
    )
    p.add_argument("-v", "--version", type=positive_int, default=None, help="JDK major version to use")
    p.add_argument("-j", "--jar", default=None, help="Path to the JAR file to run")
    p.add_argument(
        "-a", "--jvm-arg", dest="jvm_args", action="append", default=[],
        metavar="ARG", help="Argument for the JVM (repeatable)",
    )
    p.add_argument(
        "-p", "--param", dest="jar_params", action="append", default=[],
        metavar="PARAM", help="Parameter for the JAR (repeatable)",
    )
    p.add_argument("extra_params", nargs="*", metavar="PARAM", help=argparse.SUPPRESS)
    p.add_argument(
        "--picker", choices=["auto", "tui", "cli"], default="auto",
        help="How to ask when several JDKs match (default: auto)",
    )
    p.add_argument("--forget", action="store_true", help="Forget the remembered JDK for --jar")
    p.add_argument(
        "--add-location", action="append", default=[], metavar="DIR",
        help="Remember an extra directory to scan for JDKs (repeatable)",
    )
    p.add_argument("--list", action="store_true", help="List detected JDKs and exit")
    p.add_argument("--json", action="store_true", help="With --list: print JSON")
    p.add_argument("--settings", default=None, help="Path to settings.json")
    p.add_argument("--debug", action="store_true", help="Verbose logging on stderr")
    return p


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.list and (args.version is None or not args.jar):
        parser.error("the following arguments are required: -v/--version, -j/--jar")
    return args


def make_chooser(kind: str) -> JdkChooser:
    if kind == "auto":
        kind = "tui" if sys.stdin.isatty() and sys.stdout.isatty() else "cli"
    if kind == "tui":
        from ui.jdk_picker import TextualChooser
        return TextualChooser()
    from cli_menu import TerminalChooser
    return TerminalChooser()


# ──────────────────────────────────────────────
#  Listing
# ──────────────────────────────────────────────

def print_installations(registry: JavaRegistry, as_json: bool = False) -> None:
    installations = registry.sorted()

    if as_json:
        print(json.dumps([i.to_dict() for i in installations], indent=2))
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    if not installations:
        console.print("[bold red]No JDK installations found[/]")
        return

    t = Table(title="Detected JDKs")
    t.add_column("Version", style="cyan", justify="right")
    t.add_column("Vendor", style="white")
    t.add_column("Path", style="green", overflow="fold")
    for inst in installations:
        t.add_row(str(inst.version), inst.vendor_label, inst.path)
    console.print(t)


# ──────────────────────────────────────────────
#  Entry Point
# ──────────────────────────────────────────────

def run(args: argparse.Namespace) -> int:
    settings = SettingsManager(args.settings)
    for location in args.add_location:
        if settings.add_location(location):
            logger.info("Added JDK location %s", location)

    scanner = JavaScanner(settings.list_extra_roots())
    registry = JavaRegistry(scanner.scan())

    if args.list:
        print_installations(registry, as_json=args.json)
        return EXIT_OK

    request = LaunchRequest.create(
        version=args.version,
        jar_path=args.jar,
        jvm_args=args.jvm_args,
        jar_params=[*args.jar_params, *args.extra_params],
    )
    logger.debug("Parsed arguments: %s", request)

    if args.forget:
        settings.forget(request.jar_path)

    selector = JdkSelector(settings, make_chooser(args.picker))
    try:
        jdk = selector.select(
            registry.for_version(request.version), request, registry.versions(),
        )
    except NoMatchingVersion as exc:
        logger.error("%s", exc)
        return EXIT_NO_MATCHING_VERSION
    except SelectionCancelled as exc:
        logger.error("%s", exc)
        return EXIT_SELECTION_CANCELLED

    try:
        outcome = JarRunner().launch(jdk, request)
    except SpawnFailure as exc:
        logger.error("%s", exc)
        return EXIT_SPAWN_FAILURE

    if outcome.failed_relays:
        logger.warning("Stream relay errors: %s", ", ".join(outcome.failed_relays))
    return outcome.host_exit_code


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    settings_path = Path(args.settings) if args.settings else default_settings_path()
    args.settings = str(settings_path)
    setup_logging(settings_path.parent, debug=args.debug)

    try:
        return run(args)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    except Exception:
        logger.exception("Unexpected error")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
