import logging
from typing import Optional

from sqlmodel import Session

from core.constants import SHARE_PRICE_SCALE, SnapshotSource
from models import SharePricePoint, Vault
from models.share_price_point import share_price_point_id
from services.vault_reader_service import VaultReaderService

logger = logging.getLogger(__name__)


def compute_share_price(total_assets: int, total_supply: int) -> int:
    """totalAssets * 1e18 / totalSupply, 0 for a never-funded vault."""
    if total_supply <= 0:
        return 0
    return total_assets * SHARE_PRICE_SCALE // total_supply


def update_vault_latest(session: Session, point: SharePricePoint) -> Optional[Vault]:
    vault = session.get(Vault, point.vault_id)
    if vault is None:
        return None

    vault.latest_share_price_e18 = point.share_price_e18
    vault.latest_tvl = point.tvl
    vault.latest_snapshot_block = point.block_number
    session.add(vault)
    session.commit()
    return vault


async def snapshot_vault(
    session: Session,
    reader: VaultReaderService,
    vault_address: str,
    block_number: int,
    timestamp: int,
    source: SnapshotSource,
) -> Optional[SharePricePoint]:
    """Read vault totals at ``block_number`` and persist a SharePricePoint.

    The point is committed before the vault's latest-* fields; the point is
    the source of truth and the latest fields are corrected by the next
    successful snapshot. Returns ``None`` when the read failed.
    """
    vault_address = vault_address.lower()
    source = SnapshotSource(source)

    totals = await reader.read_totals(vault_address, block_number)
    if totals is None:
        logger.info(
            "Skip %s snapshot for vault %s @ %s", source.value, vault_address, block_number
        )
        return None

    share_price_e18 = compute_share_price(totals.total_assets, totals.total_supply)
    point = SharePricePoint(
        id=share_price_point_id(vault_address, block_number, source),
        vault_id=vault_address,
        timestamp=timestamp,
        block_number=block_number,
        share_price_e18=share_price_e18,
        tvl=totals.total_assets,
        source=source,
    )
    point = session.merge(point)
    session.commit()

    update_vault_latest(session, point)
    logger.info(
        "Snapshot %s vault %s @ %s: pps=%s tvl=%s",
        source.value,
        vault_address,
        block_number,
        share_price_e18,
        totals.total_assets,
    )
    return point
