"""CLI for the mpdsub server.

Runs the Subsonic API server in the foreground until interrupted or
terminated.
"""

import argparse
import logging
import sys
from pathlib import Path

from config import ConfigError, get_config_path, load_settings
from subsonic.httpd import create_server

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser. Flags override config file values."""
    parser = argparse.ArgumentParser(
        prog="mpdsub",
        description="Subsonic API server in front of an MPD server",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="YAML config file (default: $MPDSUB_CONFIG)",
    )
    parser.add_argument(
        "--bind", "-b",
        help="Address to bind to",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on",
    )

    # MPD options
    parser.add_argument(
        "--mpd-host",
        help="MPD host name, address or UNIX socket path",
    )
    parser.add_argument(
        "--mpd-port",
        type=int,
        help="MPD port",
    )
    parser.add_argument(
        "--mpd-password",
        help="MPD password",
    )
    parser.add_argument(
        "--keepalive",
        type=float,
        help="Seconds between MPD keepalive pings (0 disables)",
    )

    # Subsonic options
    parser.add_argument(
        "--user", "-u",
        help="Username Subsonic clients authenticate with",
    )
    parser.add_argument(
        "--password",
        help="Password Subsonic clients authenticate with",
    )
    parser.add_argument(
        "--music-dir",
        type=Path,
        help="MPD music directory, used for streaming",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv=None):
    """CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        settings = load_settings(
            args.config or get_config_path(),
            bind=args.bind,
            port=args.port,
            mpd_host=args.mpd_host,
            mpd_port=args.mpd_port,
            mpd_password=args.mpd_password,
            keepalive=args.keepalive,
            subsonic_user=args.user,
            subsonic_password=args.password,
            music_directory=args.music_dir,
            verbose=True if args.verbose else None,
        )
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    server = create_server(settings)
    try:
        server.start()
    except RuntimeError as e:
        logger.error("Failed to start server: %s", e)
        server.close()
        return 1

    server.install_signal_handlers()

    print(f"\nServer running at http://{server.bind}:{server.port}")
    print(f"MPD: {settings.mpd_host}:{settings.mpd_port}")
    print(f"Music directory: {settings.config.music_directory}")
    print("\nPress Ctrl+C to stop...")

    try:
        server.serve_forever()
    finally:
        server.shutdown()
        server.db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
