"""
autoprofiler/cli.py
Command line entry point.

    autoprofiler validate TRACE SAMPLES_JSON
    autoprofiler run --policy memory --duration 30
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from autoprofiler.agent import build_agent
from autoprofiler.base.config import get_config, set_config, setup_logging
from autoprofiler.contracts.samples import SampleActivity
from autoprofiler.errors import ErrorCode, ValidationFailedError, handle_error
from autoprofiler.observer.bus import EventBus
from autoprofiler.observer.sinks import FileSink, LogSink
from autoprofiler.scheduler.policies import POLICY_NAMES
from autoprofiler.validation.chain import TraceValidatorFactory

logger = logging.getLogger(__name__)


def load_samples(path: Path) -> List[SampleActivity]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("samples", [])
    return [SampleActivity.from_dict(item) for item in data]


def run_validate(args) -> int:
    """Validate a trace against a JSON list of samples."""
    try:
        samples = load_samples(args.samples)
    except (OSError, KeyError, TypeError, AttributeError, ValueError) as e:
        err = handle_error(e, context=f"Cannot load samples from {args.samples}", code=ErrorCode.SAMPLES_INVALID)
        logger.debug(f"[CLI] {err.to_json()}")
        print(f"Error: {err}", file=sys.stderr)
        return 2

    chain = TraceValidatorFactory().create(args.trace)
    try:
        result = chain.validate(samples)
    except ValidationFailedError as e:
        print(json.dumps({
            "is_trace_valid": False,
            "validator": e.validator_name,
            "message": e.message,
            "should_stop_uploading": e.should_stop_uploading,
        }, indent=2))
        return 1 if e.should_stop_uploading else 0

    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def _run_agent(args) -> None:
    config = get_config()
    if args.duration:
        config = replace(config, scheduling=replace(config.scheduling, duration=timedelta(seconds=args.duration)))
        set_config(config)

    bus = EventBus()
    bus.subscribe("*", LogSink().handle)
    sink: Optional[FileSink] = None
    if args.events:
        sink = FileSink(args.events)
        await sink.start()
        bus.subscribe("*", sink.handle)

    agent = build_agent(config, policy_names=args.policy, bus=bus)
    cancel_event = asyncio.Event()
    try:
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)
    except NotImplementedError:
        # Windows/some environments don't support add_signal_handler
        pass

    try:
        await agent.run(cancel_event)
    finally:
        if sink:
            await sink.stop()


def run_agent(args) -> int:
    """Run the scheduling policies until interrupted."""
    try:
        asyncio.run(_run_agent(args))
    except KeyboardInterrupt:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoprofiler", description="Adaptive profiling agent")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser("validate", help="Check samples against a captured trace")
    validate_parser.add_argument("trace", type=Path, help="Trace file (NDJSON)")
    validate_parser.add_argument("samples", type=Path, help="JSON list of samples")
    validate_parser.set_defaults(func=run_validate)

    run_parser = subparsers.add_parser("run", help="Run the profiling agent")
    run_parser.add_argument(
        "--policy", action="append", choices=POLICY_NAMES,
        help="Scheduling policy; repeat for several (default: memory)",
    )
    run_parser.add_argument("--duration", type=float, help="Capture duration in seconds")
    run_parser.add_argument("--events", help="Write telemetry events to this NDJSON file")
    run_parser.set_defaults(func=run_agent)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    if getattr(args, "policy", None) is None and args.command == "run":
        args.policy = ["memory"]

    setup_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
