"""Command line entry point: ``python -m webfront``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import uvicorn

from .server.config import DEFAULT_FRONTEND, SiteConfig
from .server.errors import ConfigError
from .server.http import Site

logger = logging.getLogger("webfront")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webfront",
        description="Serve a directory of templates, decorating JSON from a backend.",
    )
    parser.add_argument("--frontend", default=DEFAULT_FRONTEND, help="Address to serve on")
    parser.add_argument("--backend", default="", help="Backend API base URL")
    parser.add_argument("--dir", dest="directory", default=".", type=Path, help="Site root")
    parser.add_argument(
        "--json",
        dest="json_files",
        action="append",
        default=[],
        help="JSON file exposed to templates as config.<name> (repeatable)",
    )
    parser.add_argument("--layout", default="", help="Layout template wrapping every page")
    parser.add_argument(
        "--auth",
        action="append",
        default=[],
        help="Basic auth pattern user:pass@path (repeatable)",
    )
    parser.add_argument("--proxy", action="store_true", help="Trust X-Forwarded-For headers")
    parser.add_argument("--prod", action="store_true", help="Compile and bundle once")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--timeout", dest="backend_timeout", type=float, default=10.0, help="Backend timeout (s)"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SiteConfig:
    return SiteConfig(
        frontend=args.frontend,
        backend=args.backend,
        directory=args.directory,
        json_files=tuple(args.json_files),
        layout=args.layout,
        auth=tuple(args.auth),
        proxy=args.proxy,
        prod=args.prod,
        debug=args.debug,
        backend_timeout=args.backend_timeout,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
        config.config_json()
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    site = Site(config)
    logger.info("Serving %s on %s", config.directory, config.frontend)
    uvicorn.run(
        site.app,
        host=config.host,
        port=config.port,
        log_level="debug" if config.debug else "info",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
