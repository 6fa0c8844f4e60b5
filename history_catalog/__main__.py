"""Command-line entry point: ``python -m history_catalog <command>``."""

from __future__ import annotations

import argparse
from pathlib import Path

from .config import HISTORY_PICS_DIR, HISTORY_SOURCES_DIR


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="history_catalog",
        description="Ingest historical event sources and prefetch their images.",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_ingest = sub.add_parser("ingest", help="Sync source files into the event store")
    p_ingest.add_argument(
        "--memory", action="store_true",
        help="Use an in-memory store (dry run, nothing is persisted)",
    )

    p_pics = sub.add_parser("prefetch-pics", help="Download event images into the pictures directory")
    p_pics.add_argument(
        "--include-manual", action="store_true",
        help="Also cache images from the image column when it is an http(s) url",
    )

    for p in (p_ingest, p_pics):
        p.add_argument(
            "--sources-dir", type=Path, default=HISTORY_SOURCES_DIR,
            help=f"Directory of .tsv source files (default: {HISTORY_SOURCES_DIR})",
        )
        p.add_argument(
            "--pics-dir", type=Path, default=HISTORY_PICS_DIR,
            help=f"Bundled pictures directory (default: {HISTORY_PICS_DIR})",
        )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.cmd == "ingest":
        from .services.storage import InMemoryEventStore
        from .workflows.ingest_pipeline import run

        store = InMemoryEventStore() if args.memory else None
        report = run(store, sources_dir=args.sources_dir, pics_dir=args.pics_dir)
        print(f"Ingested {report.events_upserted} events, errors: {report.errors}")
        return 0

    if args.cmd == "prefetch-pics":
        from .workflows.prefetch_pics import run

        stats = run(args.sources_dir, args.pics_dir, include_manual=args.include_manual)
        return 1 if stats.failed else 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
