#!/usr/bin/env python3
"""Ingest text or markdown files into a bot's knowledge base.

Each file is chunked, optionally passed through language-model extraction,
embedded and upserted into the configured Neo4j store.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from bot_recall.bootstrap import configure_observability, create_bot_recall
from bot_recall.core.base import ApplicationError
from bot_recall.core.logging import get_logger
from bot_recall.domain.models import SourceMeta
from bot_recall.infrastructure.repositories import NullDocumentStore

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest documents into a bot's knowledge base")
    parser.add_argument("bot_scope", help="Bot scope the fragments belong to")
    parser.add_argument("files", type=Path, nargs="+", help="Text or markdown files to ingest")
    parser.add_argument(
        "--extract",
        action="store_true",
        help="Run language-model knowledge extraction on every chunk",
    )
    parser.add_argument(
        "--hashing",
        action="store_true",
        help="Skip the neural embedding model and use hashing vectors",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Chunk the files and report, without embedding or storing",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_observability()

    missing = [path for path in args.files if not path.exists()]
    if missing:
        for path in missing:
            logger.error(f"File not found: {path}")
        return 1

    app = await create_bot_recall(neural=not args.hashing)
    try:
        if isinstance(app.store, NullDocumentStore) and not args.dry_run:
            logger.error("No document store available, nothing would be stored")
            return 1

        total = 0
        for path in args.files:
            text = path.read_text(encoding="utf-8")
            meta = SourceMeta(source="file", filename=path.name, title=path.stem)

            if args.dry_run:
                drafts = app.chunk_document(text, meta)
                logger.info(f"{path.name}: {len(drafts)} chunks", sizes=[len(draft) for draft in drafts])
                continue

            report = await app.ingestion.ingest(args.bot_scope, text, meta, extract=args.extract)
            total += report.stored
            logger.info(
                f"{path.name}: stored {report.stored} fragments",
                drafts=report.drafts,
                degraded=report.degraded,
                model=report.embedding_model,
            )

        if not args.dry_run:
            logger.info(f"Ingestion complete: {total} fragments stored for {args.bot_scope}")
    except ApplicationError as e:
        logger.error(f"Ingestion failed: {e.message}", error_code=e.code.value)
        return 1
    finally:
        await app.close()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
