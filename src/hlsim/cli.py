from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import Sequence

import structlog

from hlsim.config import RunConfig
from hlsim.errors import InterruptedRun, InvalidConfiguration, TargetResolutionError
from hlsim.loadgen.runner import Dispatcher
from hlsim.log import setup_logging
from hlsim.metrics import StatsAggregator
from hlsim.report import ProgressPrinter

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_UNRESOLVED = 1
EXIT_INTERRUPTED = 130

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hlsim",
        description="HTTP load simulator",
        epilog=(
            "Example: hlsim -r 20 -n 1 -u http://localhost:3000/user/login "
            "makes 20 requests per second during 1 second"
        ),
    )
    parser.add_argument("-r", "--rate", type=float, default=10.0, help="request rate per second")
    parser.add_argument("-n", "--duration", type=float, default=5.0, help="total load duration, seconds")
    parser.add_argument(
        "-u",
        "--uri",
        default="http://localhost:3000/",
        help="URI to request, with protocol (http:// etc) specified",
    )
    parser.add_argument(
        "-b",
        "--verbose-count",
        dest="verbose_every",
        type=int,
        default=None,
        help="print a progress line every N requests/responses",
    )
    parser.add_argument("--timeout", type=float, default=120.0, help="per-request response timeout, seconds")
    parser.add_argument("--connect-timeout", type=float, default=5.0, help="connection setup timeout, seconds")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default="WARNING",
        help="structlog level for diagnostics on stderr",
    )
    return parser


async def _run(dispatcher: Dispatcher) -> None:
    loop = asyncio.get_running_loop()
    # Not available on Windows event loops; KeyboardInterrupt still aborts the run there.
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, dispatcher.cancel)
    try:
        await dispatcher.run()
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = RunConfig.build(
            rate=args.rate,
            duration_sec=args.duration,
            uri=args.uri,
            verbose_every=args.verbose_every,
            response_timeout_sec=args.timeout,
            connect_timeout_sec=args.connect_timeout,
        )
    except InvalidConfiguration as exc:
        parser.error(str(exc))

    stats = StatsAggregator(config)
    dispatcher = Dispatcher(config)
    dispatcher.subscribe(stats)
    dispatcher.subscribe(ProgressPrinter(config, stats))

    try:
        asyncio.run(_run(dispatcher))
    except TargetResolutionError as exc:
        print(f"hlsim: {exc}", file=sys.stderr)
        return EXIT_UNRESOLVED
    except InterruptedRun as exc:
        print(f"Caught, terminating: {exc}", file=sys.stderr)
        return EXIT_INTERRUPTED
    logger.info("run_complete", response_rate=stats.response_rate, requests_failed=stats.requests_failed)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
