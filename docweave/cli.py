"""CLI entrypoints for docweave commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .errors import DocweaveError
from .logging import configure_logging
from .orchestrator import Orchestrator, RunReport


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the workspace root or its .docweave.yml (defaults to current directory).",
    )
    parser.add_argument(
        "--rerun",
        action="store_true",
        help="Ignore stored fingerprints and the build cache.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docweave",
        description="Aggregate documentation parameters across modules and generate documentation incrementally.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate documentation for every module and the aggregated publication.",
    )
    _add_common_options(generate_parser)
    generate_parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Cancel remaining units as soon as one unit fails.",
    )

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show which units would be skipped, restored or run.",
    )
    _add_common_options(plan_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docweave commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()

    if args.command == "generate":
        try:
            report = orchestrator.run_generate(
                args.path,
                fail_fast=getattr(args, "fail_fast", None),
                rerun=bool(getattr(args, "rerun", False)),
            )
        except DocweaveError as exc:
            parser.exit(1, f"docweave generate failed: {exc}\n")
        _print_results(report)
        if not report.ok:
            parser.exit(1, f"{len(report.failed)} unit(s) failed. Run with --verbose for more details.\n")
    elif args.command == "plan":
        try:
            report = orchestrator.run_plan(args.path, rerun=bool(getattr(args, "rerun", False)))
        except DocweaveError as exc:
            parser.exit(1, f"docweave plan failed: {exc}\n")
        for plan in report.plans:
            print(f"{plan.unit}: {plan.action.value} ({plan.reason})")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_results(report: RunReport) -> None:
    for result in report.results:
        line = f"{result.unit}: {result.status}"
        if result.ok and result.status != "skipped":
            line = f"{line} -> {_relativize(result.output_dir)}"
        if result.error is not None:
            line = f"{line}\n  {result.error}"
        print(line)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
