from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence

import uvicorn

from app.domain.catalog import initialize
from app.infrastructure.config import get_settings
from app.infrastructure.exceptions import ConfigurationError


def check_catalogs() -> int:
    """Load and validate the question bank and dimension catalog before serving."""
    catalogs = initialize(get_settings().catalog)
    count = len(catalogs.questions)
    print(
        f"[run-server] Catalogs OK: {count} questions, "
        f"{len(catalogs.dimensions.get_dimensions())} dimensions"
    )
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the DigiAssistant API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--no-reload", dest="reload", action="store_false", help="Disable auto-reload"
    )
    parser.add_argument(
        "--skip-checks", action="store_true", help="Start without validating the catalogs"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    if not args.skip_checks:
        try:
            check_catalogs()
        except ConfigurationError as exc:
            print(f"[run-server] Catalog error: {exc.message}", file=sys.stderr)
            raise SystemExit(1) from exc

    uvicorn.run(
        "app.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
