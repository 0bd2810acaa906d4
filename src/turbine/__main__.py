"""
=============================================================================
COMMAND LINE INTERFACE
=============================================================================

Run the server:

    python -m turbine                              # reads ./turbine.toml if present
    python -m turbine -c /etc/turbine.toml         # explicit config file
    python -m turbine -d ./public -p 8000          # no config file needed
    turbine --workers 32 --log-level DEBUG         # console script

Settings are layered: defaults < config file < TURBINE_* env < flags.
=============================================================================
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .config import DEFAULT_CONFIG_FILE, LOG_LEVELS, ServerConfig
from .errors import ConfigError
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="turbine",
        description="Minimal concurrent static-file server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m turbine                           # Use ./turbine.toml or defaults
  python -m turbine -c site.toml              # Custom config file
  python -m turbine -d ./public -p 8000       # Serve ./public on port 8000
        """
    )

    parser.add_argument(
        "--config-file", "-c",
        default=None,
        help=f"TOML config file (default: {DEFAULT_CONFIG_FILE}, skipped if absent)"
    )

    parser.add_argument(
        "--document-root", "-d",
        default=None,
        help="Directory to serve (default: web_resources)"
    )

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 12345)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: 128)"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"turbine {__version__}"
    )

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """
    Build the effective configuration from parsed arguments.

    Raises:
        ConfigError: An explicitly named config file is missing, or any
                     layer holds an invalid value.
    """
    if args.config_file is not None:
        config = ServerConfig.from_file(args.config_file)
    elif Path(DEFAULT_CONFIG_FILE).is_file():
        config = ServerConfig.from_file(DEFAULT_CONFIG_FILE)
    else:
        config = ServerConfig()

    config = ServerConfig.from_env(config)

    overrides = {
        "document_root": args.document_root,
        "host": args.host,
        "port": args.port,
        "workers": args.workers,
        "log_level": args.log_level,
    }
    config = config.merge(
        {key: value for key, value in overrides.items() if value is not None},
        source="command line",
    )

    config.validate()
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
        server = HTTPServer(config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
