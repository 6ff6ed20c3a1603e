"""
Command line entry point for the feature flag exporter.

Every option can also come from the environment (see ``shared.config``). A
flag given on the command line wins over the environment whenever its value
differs from the flag's own default.
"""

import argparse
import sys
from typing import List, Optional

from pydantic import ValidationError

from shared.config import (
    DEFAULT_API_URL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCRAPE_INTERVAL,
    STALE_COUNT_MODES,
    ExporterConfig,
    get_config,
)
from shared.errors import ConfigurationError

from . import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feature-flag-exporter",
        description="Export feature flag API metrics to Prometheus."
    )
    parser.add_argument("--api-key", default="", help="API key (can also be set via FEATURE_FLAGS_API_KEY)")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="Feature flag API base URL")
    parser.add_argument("--organization-id", default="", help="Organization ID")
    parser.add_argument("--product-id", default="", help="Product ID")
    parser.add_argument("--product-name", default="", help="Product label value (default: product-<id>)")
    parser.add_argument("--host", default="0.0.0.0", help="Address to listen on")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument("--scrape-interval", type=int, default=DEFAULT_SCRAPE_INTERVAL, help="Scrape interval in seconds")
    parser.add_argument("--request-timeout", type=float, default=DEFAULT_REQUEST_TIMEOUT, help="API request timeout in seconds")
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Log level (debug, info, warn, error)")
    parser.add_argument("--log-format", default="json", choices=["json", "console"], help="Log output format")
    parser.add_argument("--stale-count-mode", default="per_config", choices=STALE_COUNT_MODES, help="How zombie flag counts are computed")
    parser.add_argument("--metrics-namespace", default="featureflag", help="Prefix for exported metric names")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(argv: Optional[List[str]] = None) -> ExporterConfig:
    """Merge command line flags over environment configuration and validate."""
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = {
        name: value
        for name, value in vars(args).items()
        if value != parser.get_default(name)
    }

    try:
        config = get_config(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}")

    return config.validate_required()


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ConfigurationError as exc:
        print(f"[feature-flag-exporter] {exc.message}", file=sys.stderr)
        return 1

    # Imported late so --help and config errors stay cheap
    from .main import ExporterService

    service = ExporterService(config)
    try:
        service.run()
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - process surface
        service.logger.error("Application error", error=str(exc), exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
