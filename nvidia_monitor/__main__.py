"""
Entry point for NVIDIA Monitor.

Usage:
    python -m nvidia_monitor [/path/to/config.conf]
    python -m nvidia_monitor --once
    python -m nvidia_monitor --help
"""

import argparse
import asyncio
import sys
from pathlib import Path

from . import __version__
from .app import render_once, run_app
from .config.loader import ConfigError, ConfigLoader
from .config.schema import AppConfig, OutputMode
from .logging import LogConfig, get_logger, setup_logging


logger = get_logger("main")


def validate_config(config_path: str) -> int:
    """Validate configuration file and print warnings."""
    try:
        loader = ConfigLoader()
        settings = loader.load_file(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    warnings = loader.validate(settings)
    if warnings:
        print(f"Configuration warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  - {warning}")

    config = AppConfig.from_settings(settings)
    print("\nConfiguration summary:")
    print(f"  Output: {config.output.value}")
    if config.output == OutputMode.MQTT:
        print(f"  MQTT: {config.mqtt.host}:{config.mqtt.port} ({config.mqtt.topic_prefix})")
    print(f"  Update interval: {settings.update_interval} ms")
    print(f"  Alignment: {settings.alignment.value}")
    print(f"  Units: {settings.memory_unit.value}, {settings.temperature_unit.value}")

    print("\nConfiguration is valid!")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="nvidia-monitor",
        description="GPU utilization, memory and temperature status line from nvidia-smi",
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Path to configuration file (built-in defaults if omitted)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging (INFO level)")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging (DEBUG level)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (only errors)")
    parser.add_argument("--log-file", metavar="PATH", help="Write logs to file")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--validate", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--once", action="store_true", help="Print one status line and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    if args.config is not None and not Path(args.config).expanduser().exists():
        print(f"Configuration file not found: {args.config}", file=sys.stderr)
        return 1

    # CLI flags take precedence over the config file's logging block
    cli_log_config = None
    if args.debug or args.verbose or args.quiet or args.no_color or args.log_file:
        cli_log_config = LogConfig()
        if args.debug:
            cli_log_config.console_level = "debug"
        elif args.verbose:
            cli_log_config.console_level = "info"
        elif args.quiet:
            cli_log_config.console_level = "error"
        if args.no_color:
            cli_log_config.console_colors = False
        if args.log_file:
            cli_log_config.file_enabled = True
            cli_log_config.file_path = args.log_file

    setup_logging(cli_log_config)

    if args.validate:
        if args.config is None:
            print("--validate needs a configuration file", file=sys.stderr)
            return 1
        return validate_config(args.config)

    try:
        if args.once:
            print(asyncio.run(render_once(args.config)))
        else:
            asyncio.run(run_app(args.config, cli_log_config=cli_log_config))
        return 0
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
