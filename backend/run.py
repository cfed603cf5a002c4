"""
Development server entry point.

Usage:
    python run.py                  # reload on in development, off otherwise
    python run.py --no-reload
    python run.py --host 0.0.0.0 --port 9000

Host and port default to API_HOST / API_PORT.
"""
import argparse

import uvicorn

from vibe_search.config import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the vibe search API")
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=settings.APP_ENV == "development",
    )
    parser.add_argument("--host", default=settings.API_HOST)
    parser.add_argument("--port", type=int, default=settings.API_PORT)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    uvicorn.run(
        "vibe_search.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
