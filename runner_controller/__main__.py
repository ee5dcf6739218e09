"""
Standalone entrypoint for running the workload runner.

Loads the workload descriptor, derives the container's current state,
serves the HTTP control endpoint and runs the reconciliation loop until a
Quit command, a signal, or a fatal error.

Usage:
    python -m runner_controller --config workload.json [OPTIONS]
    runner-controller --config workload.json [OPTIONS]  (after pip install)

Environment Variables:
    RUNNER_MONITOR_INTERVAL: Seconds between drift checks (default: from config, else 1)
    RUNNER_CONTROL_HOST: Control endpoint bind address (default: 127.0.0.1)
    RUNNER_CONTROL_PORT: Control endpoint port (default: 8765)
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

import uvicorn

from runner_common.workload import WorkloadSpec
from runner_controller.container_manager import ContainerManager
from runner_controller.control import QueueControlSource
from runner_controller.controller import Runner
from runner_server.app import create_app

logger = logging.getLogger(__name__)

DEFAULT_CONTROL_HOST = "127.0.0.1"
DEFAULT_CONTROL_PORT = 8765


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Workload runner - reconciliation loop for a single container",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  RUNNER_MONITOR_INTERVAL   Seconds between drift checks (default: config, else 1)
  RUNNER_CONTROL_HOST       Control endpoint bind address (default: 127.0.0.1)
  RUNNER_CONTROL_PORT       Control endpoint port (default: 8765)

Note: Command-line arguments override environment variables.

Examples:
  # Run a workload
  runner-controller --config redis.json

  # Check for drift every 5 seconds, with debug logging
  runner-controller -c redis.json -m 5 --log-level DEBUG

  # Mirror the container's output into the log
  runner-controller -c redis.json --follow-logs
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        type=str,
        required=True,
        help="Path to the JSON workload descriptor",
    )

    parser.add_argument(
        "-m",
        "--monitor-interval",
        type=float,
        default=None,
        help="Seconds between drift checks (default: RUNNER_MONITOR_INTERVAL env, "
        "config value, or 1)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Control endpoint bind address (default: RUNNER_CONTROL_HOST env "
        "or 127.0.0.1)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Control endpoint port (default: RUNNER_CONTROL_PORT env or 8765)",
    )

    parser.add_argument(
        "--no-control-server",
        action="store_true",
        help="Do not serve the HTTP control endpoint",
    )

    parser.add_argument(
        "--follow-logs",
        action="store_true",
        help="Forward the container's output to the log while it runs",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "-l",
        "--log-file",
        type=str,
        default=None,
        help="Also write the log to this file",
    )

    return parser.parse_args(argv)


def get_monitor_interval(args: argparse.Namespace) -> float | None:
    """
    Get the drift-check interval override from CLI args or environment.

    Args:
        args: Parsed command-line arguments

    Returns:
        Seconds between drift checks, or None to use the descriptor's value
    """
    if args.monitor_interval is not None:
        if args.monitor_interval <= 0:
            logger.warning(
                f"Invalid interval={args.monitor_interval}, using config value"
            )
            return None
        return args.monitor_interval

    raw = os.environ.get("RUNNER_MONITOR_INTERVAL")
    if raw is None:
        return None
    try:
        interval = float(raw)
    except ValueError:
        logger.warning(f"Invalid RUNNER_MONITOR_INTERVAL={raw}, using config value")
        return None
    if interval <= 0:
        logger.warning(f"Invalid RUNNER_MONITOR_INTERVAL={raw}, using config value")
        return None
    return interval


def get_control_host(args: argparse.Namespace) -> str:
    if args.host is not None:
        return args.host
    return os.environ.get("RUNNER_CONTROL_HOST", DEFAULT_CONTROL_HOST)


def get_control_port(args: argparse.Namespace) -> int:
    """
    Get the control endpoint port from CLI args or environment.

    Args:
        args: Parsed command-line arguments

    Returns:
        TCP port for the control endpoint
    """
    if args.port is not None:
        return args.port
    raw = os.environ.get("RUNNER_CONTROL_PORT", str(DEFAULT_CONTROL_PORT))
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"Invalid RUNNER_CONTROL_PORT={raw}, using default {DEFAULT_CONTROL_PORT}"
        )
        return DEFAULT_CONTROL_PORT


def configure_logging(args: argparse.Namespace) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if args.log_file:
        handlers.append(logging.FileHandler(args.log_file))

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


async def run_controller(args: argparse.Namespace) -> None:
    """
    Initialize and run the workload runner.

    Args:
        args: Parsed command-line arguments

    This function loads the descriptor, starts the control endpoint and
    runs the loop until Quit, SIGINT/SIGTERM, or a fatal error.
    """
    spec = WorkloadSpec.load(args.config, monitor_interval=get_monitor_interval(args))

    logger.info("Starting workload runner")
    logger.info(f"  Workload: {spec.identity}")
    logger.info(f"  Image: {spec.image_ref}")
    logger.info(f"  Network: {spec.network}")
    logger.info(f"  Monitor interval: {spec.monitor_interval}s")

    control = QueueControlSource()
    runner = await Runner.create(
        spec,
        runtime=ContainerManager(),
        control=control,
        follow_logs=args.follow_logs,
    )

    # Signals close the control source; the loop treats that as Quit
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, control.close)

    server: uvicorn.Server | None = None
    server_task: asyncio.Task | None = None
    if not args.no_control_server:
        host = get_control_host(args)
        port = get_control_port(args)
        config = uvicorn.Config(
            create_app(control, runner),
            host=host,
            port=port,
            log_level=args.log_level.lower(),
        )
        server = uvicorn.Server(config)
        server_task = asyncio.create_task(server.serve())
        # Losing the endpoint means no more commands can arrive
        server_task.add_done_callback(lambda _: control.close())
        logger.info(f"  Control endpoint: http://{host}:{port}")

    try:
        await runner.run()
    except Exception as e:
        logger.error(f"Runner error: {e}", exc_info=True)
        raise
    finally:
        if server is not None and server_task is not None:
            logger.info("Stopping control endpoint...")
            server.should_exit = True
            await asyncio.gather(server_task, return_exceptions=True)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        logger.info("Workload runner stopped")


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the runner.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    configure_logging(args)

    try:
        asyncio.run(run_controller(args))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
