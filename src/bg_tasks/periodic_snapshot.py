import asyncio
import logging
from typing import Iterable, List, Optional

import click
from sqlmodel import Session

from core.config import settings
from core.constants import SnapshotSource
from core.db import engine, init_db
from log import setup_logging_to_console, setup_logging_to_file
from models import SharePricePoint
from services.snapshot_service import snapshot_vault
from services.vault_reader_service import VaultReaderService
from services.vault_registry_service import list_all_vaults

logger = logging.getLogger(__name__)


def is_sweep_block(block_number: int, interval: int = settings.SNAPSHOT_BLOCK_INTERVAL) -> bool:
    return block_number % interval == 0


async def run_periodic_snapshot(
    session: Session,
    reader: VaultReaderService,
    block_number: int,
    factories: Optional[Iterable[str]] = None,
) -> List[SharePricePoint]:
    """Snapshot every registered vault at ``block_number``.

    Keeps the time series dense when no user events happen (e.g. interest
    accruing silently). Reads run concurrently so the tick takes as long as
    the slowest vault. A vault whose read fails is skipped; the others are
    still written.
    """
    factories = list(factories) if factories is not None else settings.factory_addresses

    timestamp = await reader.get_block_timestamp(block_number)
    if timestamp is None:
        logger.warning(
            "Skip periodic snapshot @ %s: block timestamp unavailable", block_number
        )
        return []

    vault_addresses = list_all_vaults(session, factories)
    if not vault_addresses:
        return []

    results = await asyncio.gather(
        *[
            snapshot_vault(
                session, reader, vault_address, block_number, timestamp, SnapshotSource.BLOCK
            )
            for vault_address in vault_addresses
        ]
    )
    points = [point for point in results if point is not None]
    logger.info(
        "Periodic snapshot @ %s: %d/%d vaults written",
        block_number,
        len(points),
        len(vault_addresses),
    )
    return points


async def run(block_number: Optional[int]):
    reader = VaultReaderService()
    if block_number is None:
        block_number = await reader.get_latest_block_number()

    with Session(engine) as session:
        await run_periodic_snapshot(session, reader, block_number)


@click.command()
@click.option("--block", "block_number", type=int, default=None, help="Block to snapshot at (default: latest)")
def main(block_number: Optional[int]):
    setup_logging_to_console()
    setup_logging_to_file(app="periodic_snapshot", level=logging.INFO, logger=logger)
    init_db()
    asyncio.run(run(block_number))


if __name__ == "__main__":
    main()
