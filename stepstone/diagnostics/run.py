"""Command-line entry point for running pre-flight checks."""

from __future__ import annotations

import argparse
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from stepstone import __version__
from stepstone.checkers import build_checker
from stepstone.clients import BackendClients
from stepstone.config.loader import ConfigLoader
from stepstone.config.models import ProbeSettings
from stepstone.core.logging import console as error_console
from stepstone.core.logging import (
    disable_file_logging,
    enable_file_logging,
    logger as LOGGER,
    set_verbose,
)
from stepstone.diagnostics.errors import ConfigError
from stepstone.diagnostics.models import ComponentKind
from stepstone.diagnostics.runner import exit_code, format_report, render_report, report_to_json

CONFIG_ERROR_EXIT = 2

_COMPONENT_HELP = {
    ComponentKind.METASRV: "Check the metadata store used by metasrv.",
    ComponentKind.FRONTEND: "Check metasrv reachability and server addresses of a frontend.",
    ComponentKind.DATANODE: "Check metasrv reachability and the storage backend of a datanode.",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(
        prog="stepstone",
        description="Validate the external dependencies of a cluster component before it starts.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="component", required=True)

    for kind, help_text in _COMPONENT_HELP.items():
        sub = subparsers.add_parser(kind.value, help=help_text, description=help_text)
        sub.add_argument(
            "-c",
            "--config",
            type=Path,
            required=True,
            help="Component configuration file (.toml, .yaml or .yml).",
        )
        sub.add_argument(
            "--override",
            type=Path,
            default=None,
            help="Optional file deep-merged over the configuration.",
        )
        sub.add_argument(
            "--output",
            choices=("human", "json"),
            default="human",
            help="Report format.",
        )
        sub.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Log every probe step to stderr.",
        )
        sub.add_argument(
            "--log-file",
            type=Path,
            default=None,
            help="Also write debug logs to this file.",
        )
        sub.add_argument(
            "--connect-timeout",
            type=float,
            default=ProbeSettings.connect_timeout_s,
            help="Seconds allowed for establishing each connection.",
        )
        sub.add_argument(
            "--operation-timeout",
            type=float,
            default=ProbeSettings.operation_timeout_s,
            help="Seconds allowed for each read, write or delete.",
        )
        if kind is ComponentKind.DATANODE:
            sub.add_argument(
                "--include-performance",
                action="store_true",
                help="Run write/read latency and concurrency benchmarks against the storage.",
            )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, *, clients: BackendClients | None = None) -> int:
    """Run the selected checker and return an exit code."""

    args = parse_args(argv)
    set_verbose(args.verbose)
    if args.log_file is None:
        return _run(args, clients)

    enable_file_logging(args.log_file)
    try:
        return _run(args, clients)
    finally:
        disable_file_logging()


def _run(args: argparse.Namespace, clients: BackendClients | None) -> int:
    kind = ComponentKind(args.component)
    loader = ConfigLoader(args.config, args.override)
    try:
        if kind is ComponentKind.METASRV:
            config = loader.metasrv()
        elif kind is ComponentKind.FRONTEND:
            config = loader.frontend()
        else:
            config = loader.datanode()
    except ConfigError as exc:
        LOGGER.debug("Configuration error for %s", args.config, exc_info=True)
        error_console.print(f"[bold red]Configuration error:[/] {escape(str(exc))}")
        return CONFIG_ERROR_EXIT

    checker = build_checker(
        kind,
        config,
        clients=clients,
        settings=ProbeSettings(
            connect_timeout_s=args.connect_timeout,
            operation_timeout_s=args.operation_timeout,
        ),
        include_performance=getattr(args, "include_performance", False),
    )
    report = checker.run()

    config_file = str(args.config)
    if args.output == "json":
        print(report_to_json(report, config_file))
    else:
        console = Console()
        if console.is_terminal:
            render_report(report, console, config_file)
        else:
            print(format_report(report, config_file))
    return exit_code(report)


if __name__ == "__main__":
    raise SystemExit(main())
