import pytest
from sqlmodel import Session, select

from bg_tasks.periodic_snapshot import is_sweep_block, run_periodic_snapshot
from core.constants import SnapshotSource
from models import SharePricePoint, Vault
from services.vault_registry_service import register_vault
from conftest import GENESIS_TIMESTAMP

FACTORY_A = "0xccb57703b65a8643401b11cb40878f8ce0d622a3"
FACTORY_B = "0x79b99a1e9ff8f16a198dac4b42fd164680487062"
VAULT_OK = "0x1111111111111111111111111111111111111111"
VAULT_REVERTING = "0x2222222222222222222222222222222222222222"


@pytest.fixture
def registered_vaults(db_session: Session):
    for factory, vault_address in [(FACTORY_A, VAULT_OK), (FACTORY_B, VAULT_REVERTING)]:
        db_session.add(
            Vault(
                id=vault_address,
                user="0x20f89ba1b0fc1e83f9aef0a134095cd63f7e8cc7",
                factory=factory,
                created_at=GENESIS_TIMESTAMP,
                created_at_block=0,
            )
        )
        register_vault(db_session, factory, vault_address)
    db_session.commit()


def test_is_sweep_block():
    assert is_sweep_block(0, 100)
    assert is_sweep_block(300, 100)
    assert not is_sweep_block(301, 100)


@pytest.mark.asyncio
async def test_sweep_isolates_failing_vault(db_session, reader, registered_vaults):
    reader.set_totals(VAULT_OK, 1500, 1000)
    reader.reverting.add(VAULT_REVERTING)

    points = await run_periodic_snapshot(
        db_session, reader, 200, factories=[FACTORY_A, FACTORY_B]
    )

    assert len(points) == 1
    stored = db_session.exec(select(SharePricePoint)).all()
    assert len(stored) == 1
    assert stored[0].vault_id == VAULT_OK
    assert stored[0].source == SnapshotSource.BLOCK
    assert stored[0].timestamp == GENESIS_TIMESTAMP + 200
    assert stored[0].share_price_e18 == 15 * 10**17
    # both vaults were read
    assert sorted(reader.reads) == [(VAULT_OK, 200), (VAULT_REVERTING, 200)]
    assert db_session.get(Vault, VAULT_REVERTING).latest_snapshot_block is None
    assert db_session.get(Vault, VAULT_OK).latest_snapshot_block == 200


@pytest.mark.asyncio
async def test_sweep_skipped_without_block_timestamp(db_session, reader, registered_vaults):
    reader.set_totals(VAULT_OK, 1000, 1000)
    reader.missing_blocks.add(300)

    points = await run_periodic_snapshot(
        db_session, reader, 300, factories=[FACTORY_A, FACTORY_B]
    )

    assert points == []
    assert reader.reads == []
    assert db_session.exec(select(SharePricePoint)).all() == []


@pytest.mark.asyncio
async def test_sweep_with_empty_registry(db_session, reader):
    points = await run_periodic_snapshot(db_session, reader, 100, factories=[FACTORY_A])

    assert points == []
    assert reader.reads == []


@pytest.mark.asyncio
async def test_sweep_only_tracked_factories(db_session, reader, registered_vaults):
    reader.set_totals(VAULT_OK, 1000, 1000)
    reader.set_totals(VAULT_REVERTING, 1000, 1000)

    points = await run_periodic_snapshot(db_session, reader, 100, factories=[FACTORY_A])

    assert [p.vault_id for p in points] == [VAULT_OK]
