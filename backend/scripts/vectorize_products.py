"""Backfill product embeddings in rate-limited batches.

Usage (from backend/ directory):
    python scripts/vectorize_products.py                 # products lacking a current embedding
    python scripts/vectorize_products.py --force         # regenerate every product
    python scripts/vectorize_products.py --batch-size 5

Prerequisites:
    - DB is running and migrated (alembic upgrade head)
    - GEMINI_API_KEY (or OPENAI_API_KEY with EMBEDDING_PROVIDER=openai) is set in .env;
      without a key the mock provider is used
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Windows: asyncpg requires SelectorEventLoop
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Allow imports from backend/vibe_search/
sys.path.insert(0, str(Path(__file__).parent.parent))

from vibe_search.database import engine
from vibe_search.tasks.vectorization_tasks import run_pipeline


async def main(force: bool, batch_size: int | None) -> int:
    print("Starting batch product vectorization...")
    try:
        report = await run_pipeline(force_regenerate=force, batch_size=batch_size)
    finally:
        await engine.dispose()

    if report.attempted == 0:
        print(f"All products already have current embeddings ({report.skipped} skipped).")
        return 0

    rate = report.succeeded / report.attempted * 100
    print("\nVectorization complete!")
    print(f"   Processed: {report.succeeded}/{report.attempted} products in {report.batches} batches")
    print(f"   Skipped:   {report.skipped}")
    print(f"   Success rate: {rate:.1f}%")
    for pid in report.failed_ids:
        print(f"   failed: {pid}")
    return 0 if not report.failed_ids else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--force", action="store_true", default=False, help="regenerate existing embeddings")
    parser.add_argument("--batch-size", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main(args.force, args.batch_size)))
