"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the notifier.

- Provides argparse-based CLI
- Loads configuration from the environment, CLI flags override
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli
python -m orchestrator.cli --port 8080 --log-level DEBUG
python -m orchestrator.cli --check-config

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.exceptions import ConfigurationError, NotifierException

from .config import NotifierConfig
from .core import NotifierRuntime, setup_logging


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="chat-notifier",
        description="Chat notification delivery service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Configuration is read from the environment and an optional .env file.

Examples:
  %(prog)s                          # Run the service
  %(prog)s --port 8080              # Override the HTTP port
  %(prog)s --check-config           # Validate configuration and exit
        """
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        metavar="PATH",
        help="Load environment from this file (default: .env if present)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP port (overrides PORT)",
    )

    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration and exit",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (overrides LOG_LEVEL)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Log output format (overrides LOG_FORMAT)",
    )

    return parser


def build_config(args: argparse.Namespace) -> NotifierConfig:
    """
    Build configuration from the environment and CLI overrides.

    Raises:
        ConfigurationError: if an environment value cannot be parsed
    """
    config = NotifierConfig.from_env(args.env_file)

    if args.port is not None:
        config.http_port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    return config


# ============================================================
# MAIN
# ============================================================

async def async_main(config: NotifierConfig) -> int:
    """Run the notifier until a signal stops it."""
    logger = logging.getLogger("orchestrator")
    runtime: Optional[NotifierRuntime] = None

    try:
        runtime = NotifierRuntime(config)
        await runtime.run_forever()
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        return 2
    except NotifierException as e:
        logger.critical(f"Notifier failed: {e}")
        if runtime is not None:
            await runtime.stop()
        return 1

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.check_config:
        errors = config.validate()
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        if not errors:
            print("Configuration OK")
        return 1 if errors else 0

    setup_logging(config.log_level, config.log_format, config.log_dir)
    print_banner(config)

    return asyncio.run(async_main(config))


def print_banner(config: NotifierConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  CHAT NOTIFIER")
    print("=" * 60)
    print(f"  Env:        {config.app_env}")
    print(f"  Recipients: {config.recipient_mode.value}")
    print(f"  Telegram:   {'enabled' if config.telegram_enabled else 'disabled'}")
    print(f"  HTTP:       {config.http_host}:{config.http_port}")
    print(f"  Log Level:  {config.log_level}")
    print("=" * 60)
    print()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
