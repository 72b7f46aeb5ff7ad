"""
verichain CLI

Command-line interface for the verification chain.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import DEFAULT_DESCRIPTOR, ChainOverrides, parse_timeout_option, resolve
from .locator import ArtifactLocator
from .logging_config import setup_logging
from .main import EXIT_NO_ARTIFACTS, EXIT_OK, ChainConfigError
from .orchestrator import ChainExecutor
from .output import BaseFormatter, ConsoleFormatter, JsonFormatter, OutputLevel


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="verichain",
        description="verichain - staged verification chain: proof, spec, type, contract, tests",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the verification chain")
    run_parser.add_argument("path", nargs="?", default=".", help="Target project root")
    run_parser.add_argument(
        "--order",
        help="Comma-separated layer order, e.g. type,tests",
    )
    run_parser.add_argument(
        "--stop-on-fail",
        action="store_true",
        help="Halt at the first failing layer (default)",
    )
    run_parser.add_argument(
        "--all-errors",
        action="store_true",
        help="Run every configured layer even after a failure",
    )
    run_parser.add_argument(
        "--timeout",
        action="append",
        dest="timeouts",
        metavar="LAYER=MS",
        help="Per-layer timeout in milliseconds (repeatable)",
    )
    run_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    # Locate command
    locate_parser = subparsers.add_parser("locate", help="List the artifacts each layer would use")
    locate_parser.add_argument("path", nargs="?", default=".", help="Target project root")
    locate_parser.add_argument("--order", help="Comma-separated layer order")
    locate_parser.add_argument("--json", action="store_true", help="Print as JSON")

    # Config command
    config_parser = subparsers.add_parser("config", help="Show/initialize configuration")
    config_parser.add_argument("path", nargs="?", default=".", help="Target project root")
    config_parser.add_argument("--show", action="store_true", help="Show resolved config")
    config_parser.add_argument("--init", action="store_true", help="Write a starter verichain.yml")

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase verbosity",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet mode",
    )
    parser.add_argument(
        "--log-file",
        help="Log to file",
    )
    parser.add_argument(
        "--config",
        help="Config file path (default: verichain.yml in the target root)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> ChainOverrides:
    """Translate CLI flags into explicit ChainOverrides"""
    timeouts = {}
    for option in getattr(args, "timeouts", None) or []:
        layer, timeout_ms = parse_timeout_option(option)
        timeouts[layer] = timeout_ms

    return ChainOverrides(
        order=getattr(args, "order", None),
        stop_on_fail=getattr(args, "stop_on_fail", False),
        all_errors=getattr(args, "all_errors", False),
        timeouts_ms=timeouts,
        config_path=Path(args.config) if args.config else None,
    )


def _target_root(args: argparse.Namespace) -> Path:
    root = Path(args.path)
    if not root.is_dir():
        raise ChainConfigError(f"Target path is not a directory: {root}")
    return root


async def run_command(args: argparse.Namespace, formatter: BaseFormatter) -> int:
    """Run the chain and render its report"""
    root = _target_root(args)
    config = resolve(build_overrides(args), root=root)

    executor = ChainExecutor(config)
    formatter.attach(executor)

    report = await executor.run(root)
    formatter.report(report)
    return report.overall_exit_code


def locate_command(args: argparse.Namespace) -> int:
    """Dry run: show which layers apply and with which artifacts"""
    root = _target_root(args)
    config = resolve(build_overrides(args), root=root)
    found = ArtifactLocator().locate_all(root, config.order)

    if args.json:
        print(json.dumps([artifacts.to_dict() for artifacts in found.values()], indent=2))
    else:
        for layer, artifacts in found.items():
            if not artifacts.present:
                print(f"{layer.value:<9} (no artifacts)")
                continue
            for technology, paths in artifacts.by_technology.items():
                print(f"{layer.value:<9} {technology}: {len(paths)} artifact(s)")
                if args.verbose:
                    for path in paths:
                        print(f"            {path}")

    if not any(artifacts.present for artifacts in found.values()):
        return EXIT_NO_ARTIFACTS
    return EXIT_OK


def config_command(args: argparse.Namespace) -> int:
    """Show or initialize configuration"""
    root = _target_root(args)

    if args.init:
        config_path = root / "verichain.yml"
        if config_path.exists():
            print(f"Config already exists: {config_path}")
            return 1
        config_path.write_text(DEFAULT_DESCRIPTOR)
        print(f"Created config: {config_path}")
        return EXIT_OK

    config = resolve(build_overrides(args), root=root)
    print(json.dumps(config.to_dict(), indent=2))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    log_level = "DEBUG" if args.verbose >= 2 else ("INFO" if args.verbose >= 1 else "WARNING")
    if args.quiet:
        log_level = "ERROR"

    setup_logging(
        level=log_level,
        log_file=args.log_file,
        use_colors=not args.no_color,
    )

    output_level = OutputLevel.DEBUG if args.verbose >= 2 else (
        OutputLevel.VERBOSE if args.verbose >= 1 else (
            OutputLevel.QUIET if args.quiet else OutputLevel.NORMAL
        )
    )

    try:
        if args.command == "run":
            if args.json:
                formatter: BaseFormatter = JsonFormatter(level=output_level)
            else:
                formatter = ConsoleFormatter(level=output_level, use_colors=not args.no_color)
            return asyncio.run(run_command(args, formatter))
        elif args.command == "locate":
            return locate_command(args)
        elif args.command == "config":
            return config_command(args)
        else:
            print("Use --help for usage information")
            return 1
    except ChainConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
