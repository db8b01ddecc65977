"""
Import one or more sets from the catalog.

Run this job to mirror specific sets without waiting for the scheduler:

    python -m spots.jobs.import_set dmu one mom
"""

import argparse
import asyncio
import logging

from spots.db.database import async_session_factory, init_db
from spots.services.catalog_client import CatalogClient
from spots.services.reconciliation import ImportResult, Reconciler

logger = logging.getLogger(__name__)


async def run_import(set_codes: list[str]) -> list[ImportResult]:
    """Import the given sets in order. Stops at the first hard failure."""
    await init_db()

    results: list[ImportResult] = []
    async with CatalogClient() as client:
        reconciler = Reconciler(client, async_session_factory)
        for set_code in set_codes:
            logger.info("Importing set %s...", set_code)
            try:
                result = await reconciler.import_set(set_code)
            except Exception as e:
                logger.error("Failed to import set %s: %s", set_code, e)
                raise
            if not result.complete:
                logger.warning("Set %s imported partially; run the import again", set_code)
            results.append(result)

    return results


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import catalog sets into the local database")
    parser.add_argument("set_codes", nargs="+", help="Set codes, e.g. dmu")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_import([code.lower() for code in args.set_codes]))


if __name__ == "__main__":
    main()
