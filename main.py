#!/usr/bin/env python3
"""
HCC2 Edge Client - Entry Point

Registers the application with the HCC2 REST server, keeps a heartbeat
alive, and publishes CPU/memory/temperature statistics every cycle.

Usage:
    python main.py                       # Defaults plus SDK2_* environment
    python main.py --config my.yaml      # Use a YAML configuration file
    python main.py --dry-run             # Print resolved config and exit
    python main.py --verbose             # Enable debug logging
"""

import argparse
import asyncio
import json
import signal
import sys

from common.config import AppConfig, load_config, validate_config
from common.exceptions import ConfigError
from common.logging_setup import LoggingContext
from services import __version__
from services.gateway import RestGateway
from services.orchestrator import BootstrapState, Orchestrator

# Default configuration path (optional; missing file is ignored)
DEFAULT_CONFIG_PATH = "config.yaml"


def print_startup_banner(config: AppConfig):
    """Print startup information."""
    print()
    print("=" * 60)
    print("  HCC2 EDGE CLIENT")
    print("=" * 60)
    print()
    print(f"  App name:   {config.app_name}")
    print(f"  Server:     {config.base_url}{config.uri_prefix}")
    if config.webhook_enabled:
        print(f"  Config via: webhook ({config.webhook_url})")
    else:
        print("  Config via: REST polling")
    print(f"  Heartbeat:  {config.heartbeat_period_seconds}s "
          f"(steady {config.steady_heartbeat_period_seconds}s)")
    print()
    print("=" * 60)
    print()


async def main_async(config: AppConfig, log_context: LoggingContext) -> int:
    """
    Run the orchestrator until it finishes or a shutdown signal arrives.

    Returns:
        Process exit code
    """
    logger = log_context.get_logger("main")
    logger.info(f"Starting HCC2 edge client v{__version__}")

    gateway = RestGateway(config, log_context)
    orchestrator = Orchestrator(config, gateway, log_context)

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(shutdown_event.set))

    run_task = asyncio.create_task(orchestrator.run())
    shutdown_task = asyncio.create_task(shutdown_event.wait())

    try:
        await asyncio.wait({run_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        if not run_task.done():
            logger.info("Received shutdown signal")
            run_task.cancel()
            try:
                await run_task
            except asyncio.CancelledError:
                pass
            return 0

        final_state = run_task.result()
        logger.info(f"Orchestrator exited in state {final_state.value}")
        return 1 if final_state == BootstrapState.ABORTED else 0
    finally:
        shutdown_task.cancel()
        await gateway.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="HCC2 Edge Client - REST device integration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py                       # Start with defaults
    python main.py --config my.yaml      # Use custom config file
    python main.py --dry-run             # Validate config and exit
    python main.py -v                    # Enable debug logging

Environment:
    SDK2_API_URL, SDK2_URI_PREFIX, SDK2_APP_NAME, SDK2_HEARTBEAT_PERIOD,
    SDK2_RETRY_PERIOD, SDK2_MAX_RETRIES, SDK2_CALLBACK_URL,
    SDK2_USE_WEBHOOKS, LOG_LEVEL, LOG_FORMAT
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and exit without starting"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (debug) logging"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"HCC2 Edge Client v{__version__}"
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error loading configuration: {e}")
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Configuration errors:")
        for error in errors:
            print(f"  - {error}")
        sys.exit(1)

    if args.verbose:
        config.log_level = "debug"
        config.log_format = "text"

    print_startup_banner(config)

    if args.dry_run:
        print("Dry run mode - configuration valid")
        print(json.dumps(config.to_dict(), indent=2))
        sys.exit(0)

    log_context = LoggingContext(
        config.app_name,
        config.log_level,
        json_format=config.log_format != "text",
    )

    try:
        exit_code = asyncio.run(main_async(config, log_context))
    except KeyboardInterrupt:
        print("\nStopped by user")
        exit_code = 0
    except Exception as e:
        print(f"\nFatal error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
