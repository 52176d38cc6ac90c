#!/usr/bin/env python3
"""
WaveCal - Main Entry Point

Launches the wave calendar server with a customizable host/port and an
optional YAML configuration file.

Usage:
    python -m wavecal.main
    python -m wavecal.main --host 0.0.0.0 --port 8080
    python -m wavecal.main --config wavecal.yaml --debug
"""

import argparse
import os
import sys
from typing import List, Optional

import uvicorn

from wavecal.config.config_manager import get_config_manager
from wavecal.wavecal_logging import configure_logging, get_logger


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(
        description='WaveCal - event-driven wave field behind a monthly calendar',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m wavecal.main                              # Start with defaults
  python -m wavecal.main --host 0.0.0.0 --port 8080   # Custom host/port
  python -m wavecal.main --config wavecal.yaml        # Load YAML configuration
  python -m wavecal.main --debug                      # Enable debug logging
        """
    )

    parser.add_argument(
        '--host',
        type=str,
        default=None,
        help='Host to bind the server to (default: from config, 127.0.0.1)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=None,
        help='Port to bind the server to (default: from config, 8000)'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to a YAML configuration file'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )

    parser.add_argument(
        '--reload',
        action='store_true',
        help='Enable auto-reload for development'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""

    args = parse_arguments(argv)

    if args.config:
        # Also visible to reloader subprocesses
        os.environ['WAVECAL_CONFIG'] = args.config
    config = get_config_manager(args.config).config

    log_cfg = config.logging
    configure_logging(
        log_dir=log_cfg.log_dir,
        level='DEBUG' if args.debug else log_cfg.level,
        console_output=log_cfg.console_output,
        json_format=log_cfg.json_format,
        rotate_size=log_cfg.rotate_size,
        rotate_count=log_cfg.rotate_count,
        per_module_levels=log_cfg.per_module_levels,
    )
    logger = get_logger(__name__)

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info(f"Server starting on http://{host}:{port} (docs at /docs)")

    uv_config = uvicorn.Config(
        "wavecal.api.server:app",
        host=host,
        port=port,
        reload=args.reload or config.server.reload,
        log_level="debug" if args.debug else config.server.log_level.lower(),
        access_log=False,
        ws_ping_interval=20.0,
        ws_ping_timeout=20.0,
        timeout_keep_alive=30,
    )

    server = uvicorn.Server(uv_config)

    try:
        server.run()
        return 0
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
        return 0
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
