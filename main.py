#!/usr/bin/env python3
"""
SSO core -- command-line entry point.

Usage:
  python main.py serve                 # run the API with uvicorn
  python main.py serve --reload
  python main.py migrate               # create missing tables, then exit

Configuration comes from the environment / .env (see core/config.py):
  SSO_DATABASE_URL, SSO_TOKEN_TTL_SECONDS, SSO_REQUEST_TIMEOUT_SECONDS,
  SSO_HOST, SSO_PORT, SSO_ENV
"""

import argparse
import logging
import sys

from core.config import get_settings
from core.log import setup_logging

logger = logging.getLogger("sso.cli")


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("starting sso on %s:%d (env=%s)", host, port, settings.env)
    uvicorn.run("api.main:app", host=host, port=port, reload=args.reload, log_config=None)
    logger.info("sso stopped")
    return 0


def _migrate(args: argparse.Namespace) -> int:
    from storage.errors import StorageError
    from storage.store import Storage

    settings = get_settings()
    try:
        storage = Storage(settings.database_url)
    except StorageError as exc:
        logger.error("migration failed: %s", exc.__cause__ or exc)
        return 1
    storage.close()
    logger.info("schema is up to date")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Multi-tenant SSO core: per-app tokens, creator and admin roles.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind address (default: SSO_HOST).")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: SSO_PORT).")
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development).")
    serve.set_defaults(func=_serve)

    migrate = sub.add_parser("migrate", help="Create missing database tables and exit.")
    migrate.set_defaults(func=_migrate)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().env)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
