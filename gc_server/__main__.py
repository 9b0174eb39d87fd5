"""
Standalone entrypoint for running the GC analysis server.

Usage:
    python -m gc_server [OPTIONS]
    gc-server [OPTIONS]  (after pip install)

Environment Variables:
    GC_STORE_PATH: Key-value store path (default: gc_tickets.db)
    GC_STORAGE_DIR: Artifact directory (default: gc_artifacts)
    GC_MAX_CONCURRENT_JOBS: Tickets analyzed in parallel (default: 4)
    GC_STORE_RETRIES: Attempts for retried store operations (default: 3)
"""

import argparse
import logging
import sys

import uvicorn

from . import app as app_module
from .config import ServerSettings

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="GC Analysis Server - ticketed GC log upload and analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  GC_STORE_PATH           Key-value store path (default: gc_tickets.db)
  GC_STORAGE_DIR          Artifact directory (default: gc_artifacts)
  GC_MAX_CONCURRENT_JOBS  Tickets analyzed in parallel (default: 4)
  GC_STORE_RETRIES        Attempts for retried store operations (default: 3)

Note: Command-line arguments override environment variables.

Examples:
  # Run with default settings
  gc-server

  # Use a custom store and artifact directory
  gc-server --store-path /tmp/gc.db --storage-dir /tmp/gc_artifacts

  # Enable debug logging
  gc-server --log-level DEBUG
        """,
    )

    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument(
        "--store-path",
        type=str,
        default=None,
        help="Path to SQLite key-value store (default: GC_STORE_PATH env or gc_tickets.db)",
    )
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Artifact directory (default: GC_STORAGE_DIR env or gc_artifacts)",
    )
    parser.add_argument(
        "--max-concurrent-jobs",
        type=int,
        default=None,
        help="Tickets analyzed in parallel (default: GC_MAX_CONCURRENT_JOBS env or 4)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> ServerSettings:
    """Combine environment settings with command-line overrides."""
    config = ServerSettings.from_env()
    if args.store_path:
        config.store_path = args.store_path
    if args.storage_dir:
        config.storage_dir = args.storage_dir
    if args.max_concurrent_jobs is not None:
        if args.max_concurrent_jobs <= 0:
            logger.warning(
                f"Invalid max_concurrent_jobs={args.max_concurrent_jobs}, "
                f"using {config.max_concurrent_jobs}"
            )
        else:
            config.max_concurrent_jobs = args.max_concurrent_jobs
    return config


def main() -> int:
    """
    Main entrypoint for the server.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app_module.configure(build_settings(args))

    try:
        uvicorn.run(
            app_module.app,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
