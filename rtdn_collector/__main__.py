"""Command line entry point: `python -m rtdn_collector` or `rtdn-collector`."""

import argparse
import os
import sys
from typing import Optional, Sequence

import uvicorn

from rtdn_collector import __version__

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    """CLI options; every default can also come from the environment."""
    parser = argparse.ArgumentParser(
        prog="rtdn-collector",
        description="Collect Google Play real-time developer notifications and enrich subscription events",
    )
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"), help="Bind address (env HOST)")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "3000")), help="Bind port (env PORT)")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        help="Log level (env LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="json lines or colored console output (env LOG_FORMAT)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/settings.yaml"),
        help="Settings file, optional (env CONFIG_PATH)",
    )
    parser.add_argument("--data-dir", default=os.getenv("DATA_DIR"), help="Snapshot directory (env DATA_DIR)")
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Restart on code changes, for development (env RELOAD)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    # uvicorn imports the app by path, so options reach it through the environment
    exported = {
        "LOG_LEVEL": args.log_level,
        "LOG_FORMAT": args.log_format,
        "CONFIG_PATH": args.config,
        "DATA_DIR": args.data_dir,
    }
    os.environ.update({name: value for name, value in exported.items() if value})

    if args.log_format == "console":
        print(f"rtdn-collector {__version__} on http://{args.host}:{args.port}")
        print("  push webhook:  POST /push")
        print("  pull:          POST /pull | POST /pull/start | POST /pull/stop")
        print("  enrichment:    POST /subscriptions/fetch | POST /subscriptions/lookup")
        print(f"  settings:      {args.config}")

    try:
        uvicorn.run(
            "rtdn_collector.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,
        )
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        print(f"rtdn-collector failed to start: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
