"""Command-line interface for running a ramping-VU scenario."""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog
from rich.console import Console

from .config import settings
from .models.errors import ConfigurationError
from .models.report import LoadTestReport
from .models.scenario import Scenario, load_scenario
from .services.engine import EngineController
from .services.report import ReportGenerator, print_progress
from .utils.logging import setup_logging

logger = structlog.get_logger(__name__)

# Ramp to 10 VUs over 2s, jump to 100, hold for 28s
DEFAULT_STAGES = ["10:2s", "100:0", "100:28s"]


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="python -m vuload",
        description="Ramping virtual-user load generator for the /message endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default profile against a local target
  python -m vuload

  # Custom ramp: 5 VUs over 10s, hold for a minute, ramp down
  python -m vuload --stage 5:10s --stage 5:1m --stage 0:10s

  # GET without the POST timestamp
  python -m vuload --no-timestamp --base-url http://staging:1323
""",
    )

    target_group = parser.add_argument_group("Target")
    target_group.add_argument(
        "--base-url", "-u",
        default=settings.target_base_url,
        help=f"Target base URL (default: {settings.target_base_url})",
    )
    target_group.add_argument(
        "--no-timestamp",
        action="store_true",
        help="Do not pass the POST response timestamp to the GET request",
    )

    scenario_group = parser.add_argument_group("Scenario")
    scenario_group.add_argument(
        "--stage", "-s",
        action="append",
        dest="stages",
        metavar="TARGET:DURATION",
        help="Ramp stage, e.g. 10:2s (can repeat; default: %s)" % " ".join(DEFAULT_STAGES),
    )
    scenario_group.add_argument(
        "--start-vus",
        type=int,
        default=settings.start_vus,
        help=f"VUs running before the first stage (default: {settings.start_vus})",
    )
    scenario_group.add_argument(
        "--think-time",
        default=settings.think_time_seconds,
        help=f"Pause between iterations (default: {settings.think_time_seconds}s)",
    )
    scenario_group.add_argument(
        "--graceful-stop",
        default=settings.graceful_stop_seconds,
        help=f"Drain timeout (default: {settings.graceful_stop_seconds}s)",
    )

    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "--output-dir", "-o",
        default=settings.output_dir,
        help=f"Output directory for results (default: {settings.output_dir})",
    )
    output_group.add_argument(
        "--no-report",
        action="store_true",
        help="Skip report generation",
    )
    output_group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output",
    )
    output_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    return parser


def parse_stage(value: str) -> dict:
    """Parse ``TARGET:DURATION`` into a stage mapping."""
    target, sep, duration = value.partition(":")
    if not sep:
        raise ConfigurationError(f"Stage must be TARGET:DURATION, got {value!r}")
    try:
        target_vus = int(target)
    except ValueError:
        raise ConfigurationError(f"Stage target must be an integer, got {target!r}")
    return {"target": target_vus, "duration": duration}


def build_scenario(args) -> Scenario:
    """Build the scenario from parsed arguments.

    Raises:
        ConfigurationError: If any argument is invalid.
    """
    stages: List[dict] = [parse_stage(s) for s in (args.stages or DEFAULT_STAGES)]
    return load_scenario(
        {
            "stages": stages,
            "start_vus": args.start_vus,
            "think_time": args.think_time,
            "graceful_stop": args.graceful_stop,
            "base_url": args.base_url,
            "include_timestamp": not args.no_timestamp,
        }
    )


async def run_load_test(scenario: Scenario, quiet: bool = False) -> LoadTestReport:
    """Run the scenario, cancelling cleanly on SIGINT/SIGTERM."""

    def progress(msg: str) -> None:
        if not quiet:
            print_progress(msg)

    engine = EngineController(scenario, progress_callback=progress)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform's event loop
            pass

    try:
        return await engine.run()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    log_config = settings.logging
    if args.verbose:
        log_config = log_config.model_copy(update={"level": "DEBUG"})
    elif args.quiet:
        log_config = log_config.model_copy(update={"level": "WARNING"})
    setup_logging(log_config)

    try:
        scenario = build_scenario(args)
    except ConfigurationError as e:
        logger.debug("Invalid configuration", **e.to_dict())
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    try:
        report = asyncio.run(run_load_test(scenario, quiet=args.quiet))
    except Exception as e:
        logger.error("Load test failed", error=str(e), exc_info=args.verbose)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.no_report:
        generator = ReportGenerator(args.output_dir, console=Console())
        json_path = generator.generate_json(report)
        if not args.quiet:
            generator.print_console_summary(report)
        print(f"\nJSON report saved: {json_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
