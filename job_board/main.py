"""CLI entry point: config check, local database setup, and the web server."""

import argparse
import logging
import sys

from job_board.config import AppConfig, load_config, validate_config
from job_board.utils.logging_config import setup_logging

logger = logging.getLogger("job_board")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job Board - job postings, registration and profiles",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "--init-db", action="store_true",
        help="Create the local backend's tables and exit",
    )
    parser.add_argument(
        "--check-config", action="store_true",
        help="Print configuration warnings and exit",
    )
    parser.add_argument(
        "--serve", action="store_true",
        help="Run the web server",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for --serve")
    parser.add_argument("--port", type=int, default=8000, help="Port for --serve")
    return parser.parse_args(argv)


def init_db(config: AppConfig) -> bool:
    """Create tables for the local backend. Hosted schemas are managed remotely."""
    if config.backend.mode != "local":
        print("Backend mode is not 'local'; the hosted platform owns its schema.", file=sys.stderr)
        return False

    from job_board.backend.local import LocalBackend

    backend = LocalBackend(
        database_url=config.backend.database_url,
        storage_dir=config.backend.storage_dir,
        public_base_url=config.backend.public_base_url,
    )
    try:
        backend.create_all()
    finally:
        backend.close()
    logger.info("Local database initialized at %s", config.backend.database_url)
    return True


def serve(config: AppConfig, host: str, port: int) -> None:
    import uvicorn

    from job_board.web.app import create_app

    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config(args.config, required=not (args.check_config or args.serve))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_dir, config.log_level)

    warnings = validate_config(config)
    for w in warnings:
        logger.warning("Config: %s", w)

    if args.check_config:
        if warnings:
            for w in warnings:
                print(f"- {w}")
            sys.exit(1)
        print("Configuration OK")
        return

    if args.init_db:
        if not init_db(config):
            sys.exit(1)
        return

    if args.serve:
        serve(config, args.host, args.port)
        return

    parse_args(["--help"])


if __name__ == "__main__":
    main()
