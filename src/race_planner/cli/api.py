"""CLI entrypoint for serving the race_planner HTTP API."""

from __future__ import annotations

import argparse
import os

import uvicorn

from race_planner.adapters.observability import configure_runtime_logging


def build_arg_parser() -> argparse.ArgumentParser:
    """Create CLI args for the local API server process."""
    parser = argparse.ArgumentParser(description="Serve race_planner API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for the checklist library (default: work/local/race_planner.db).",
    )
    parser.add_argument(
        "--data-dir",
        default="",
        help="Directory with races.json and profiles.json (default: bundled sample data).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI flags and start uvicorn with the app module path."""
    configure_runtime_logging()
    parser = build_arg_parser()
    parsed = parser.parse_args(argv)
    db_path = str(parsed.db_path).strip()
    if db_path:
        os.environ["RACE_PLANNER_DB_PATH"] = db_path
    data_dir = str(parsed.data_dir).strip()
    if data_dir:
        os.environ["RACE_PLANNER_DATA_DIR"] = data_dir
    uvicorn.run(
        "race_planner.api.app:app",
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
