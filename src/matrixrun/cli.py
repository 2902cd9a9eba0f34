"""CLI: submit a run, resume the last run, or cancel the last run."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from matrixrun import __version__
from matrixrun.adapters.mock import MockMatrixServiceAdapter, MockStorageAdapter
from matrixrun.config import Settings
from matrixrun.core.run_orchestrator import RunOrchestrator
from matrixrun.core.run_resolver import FatalRunError
from matrixrun.models.args import ArgsError, load_args
from matrixrun.models.enums import Platform

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="matrixrun",
        description="Run test matrices on a remote testing service and collect results",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--results-dir", default=None, help="Local results root")
    parser.add_argument("--poll-interval", type=float, default=None,
                        help="Detail poll interval in seconds")
    parser.add_argument("--mock", action="store_true",
                        help="Use in-process mock services instead of the real ones")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Submit a new run and wait for its results")
    run.add_argument("config", help="YAML run arguments")
    run.add_argument("--platform", default=Platform.ANDROID.value,
                     choices=[p.value for p in Platform])
    run.add_argument("--async", dest="async_run", action="store_true",
                     help="Return after submission; use 'refresh' later")

    sub.add_parser("refresh", help="Refresh, poll and fetch results of the last run")
    sub.add_parser("cancel", help="Cancel unfinished matrices of the last run")

    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    """Build Settings from the environment, with CLI flags taking precedence."""
    overrides: dict = {}
    if args.results_dir:
        overrides["results_dir"] = args.results_dir
    if args.poll_interval is not None:
        overrides["poll_interval"] = args.poll_interval
    if args.mock:
        overrides["use_mock"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level
    return Settings(**overrides)


def _build_adapters(settings: Settings):
    """Build adapters: mock if requested, real REST clients otherwise."""
    if settings.use_mock:
        return MockMatrixServiceAdapter(), MockStorageAdapter()

    from matrixrun.adapters.gcs import GcsClient
    from matrixrun.adapters.testlab import MatrixServiceClient

    service = MatrixServiceClient(
        settings.testing_url, settings.access_token, timeout=settings.request_timeout,
    )
    storage = GcsClient(
        settings.storage_url, settings.access_token, timeout=settings.request_timeout,
    )
    return service, storage


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """Dispatch one subcommand. Returns the process exit code."""
    service, storage = _build_adapters(settings)
    orchestrator = RunOrchestrator(settings, service, storage)
    try:
        if args.command == "run":
            run_args = load_args(args.config, Platform(args.platform))
            if args.async_run:
                run_args.async_ = True
            exit_code = await orchestrator.new_run(run_args)
            return exit_code or 0
        if args.command == "refresh":
            return await orchestrator.refresh_last_run()
        if args.command == "cancel":
            await orchestrator.cancel_last_run()
            return 0
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        for adapter in (service, storage):
            close = getattr(adapter, "close", None)
            if close is not None:
                await close()


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = build_settings(args)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )

    try:
        exit_code = asyncio.run(run_command(args, settings))
    except (FatalRunError, ArgsError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
