"""CLI entrypoints for regplan commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .host import StandaloneHost
from .loader import SourceLoader
from .logging import configure_logging
from .manifest import ManifestWriteError
from .planner import PhaseError, RegistrationPlanner
from .registry import RecordingSink
from .scanner import TypeUniverseScanner


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    def default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default(False),
        help="Log every registration decision.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default(False),
        help="Only log warnings and errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=default(None),
        metavar="PATH",
        help="Also write DEBUG-level logs to this file.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project directory containing .regplan.yml (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regplan",
        description="Plan which types keep reflective and serialization metadata in a closed-world build.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser(
        "plan",
        help="Run both planner phases against the configured classpath.",
    )
    _add_logging_options(plan_parser, suppress_default=True)
    _add_path_argument(plan_parser)
    plan_parser.add_argument(
        "--reachable",
        action="append",
        default=[],
        metavar="TYPE",
        help="Qualified type name the analysis reports as reachable (repeatable).",
    )
    plan_parser.add_argument(
        "--manifest",
        type=Path,
        default=None,
        help="Write the decision manifest here (overrides config and environment).",
    )
    plan_parser.add_argument(
        "--registrations",
        type=Path,
        default=None,
        help="Dump every sink registration as JSON to this path.",
    )

    scan_parser = subparsers.add_parser(
        "scan",
        help="List the resolvable types on the configured classpath.",
    )
    _add_logging_options(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for regplan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, quiet=args.quiet, log_file=args.log_file)

    project = Path(args.path).expanduser()
    if not project.exists():
        parser.exit(1, f"Project path not found: {project}\n")

    try:
        config = load_config(project)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    if args.command == "plan":
        if args.manifest is not None:
            config.manifest_path = args.manifest
        sink = RecordingSink()
        try:
            planner = RegistrationPlanner.from_config(config, sink)
            StandaloneHost(config.classpath).run(planner, args.reachable)
        except ManifestWriteError as exc:
            parser.exit(1, f"regplan plan failed: {exc}\n")
        except (PhaseError, ValueError, TypeError, RuntimeError) as exc:
            parser.exit(1, f"regplan plan failed: {exc}\nRun with --verbose for more details.\n")
        if args.registrations is not None:
            sink.dump(args.registrations)
        print(
            f"{len(planner.decisions)} decisions, {len(sink.types)} types registered, "
            f"{len(sink.serialization)} for serialization"
        )
        if config.manifest_path is not None:
            print(f"Manifest written to {_relativize(config.manifest_path)}")
    elif args.command == "scan":
        scanner = TypeUniverseScanner(workers=config.workers, exclude_paths=config.exclude_paths)
        loader = SourceLoader(config.classpath)
        for name in sorted(descriptor.name for descriptor in scanner.scan(loader, config.classpath)):
            print(name)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
