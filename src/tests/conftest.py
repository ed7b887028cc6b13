import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("ENVIRONMENT_NAME", "Test")

import pytest
from hexbytes import HexBytes
from sqlmodel import Session

from core.db import engine, init_db
from models import (
    IndexerState,
    ProcessedLog,
    SharePricePoint,
    UserPosition,
    Vault,
    VaultRegistry,
    VaultRegistryEntry,
)
from services.vault_reader_service import VaultTotals

GENESIS_TIMESTAMP = 1770000000


class FakeVaultReader:
    """In-memory stand-in for VaultReaderService."""

    def __init__(self):
        self.totals = {}
        self.reverting = set()
        self.missing_blocks = set()
        self.logs = []
        self.head = 0
        self.reads = []

    def set_totals(self, vault_address: str, total_assets: int, total_supply: int):
        self.totals[vault_address.lower()] = VaultTotals(total_assets, total_supply)

    async def read_totals(self, vault_address: str, block_number: int):
        self.reads.append((vault_address.lower(), block_number))
        if vault_address.lower() in self.reverting:
            return None
        return self.totals.get(vault_address.lower())

    async def get_block_timestamp(self, block_number: int):
        if block_number in self.missing_blocks:
            return None
        return GENESIS_TIMESTAMP + block_number

    async def get_latest_block_number(self) -> int:
        return self.head

    async def get_logs(self, addresses, from_block: int, to_block: int):
        addresses = {a.lower() for a in addresses}
        return [
            log
            for log in self.logs
            if log["address"].lower() in addresses
            and from_block <= log["blockNumber"] <= to_block
        ]


def _address_topic(address: str) -> HexBytes:
    return HexBytes("0x" + "0" * 24 + address.lower()[2:])


def make_log(
    address: str,
    topic: str,
    block_number: int,
    log_index: int = 0,
    indexed=(),
    words=(),
    tx_hash: str = None,
):
    return {
        "removed": False,
        "logIndex": log_index,
        "transactionIndex": 0,
        "transactionHash": HexBytes(tx_hash or "0x" + f"{block_number:032x}{log_index:032x}"),
        "blockHash": HexBytes("0x" + f"{block_number:064x}"),
        "blockNumber": block_number,
        "address": address,
        "data": HexBytes("0x" + "".join(f"{w:064x}" for w in words)),
        "topics": [HexBytes(topic)] + [_address_topic(a) for a in indexed],
    }


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    init_db(engine)


@pytest.fixture
def db_session():
    session = Session(engine)
    yield session
    session.close()


# create fixture run before every test
@pytest.fixture(autouse=True)
def seed_data(db_session: Session):
    db_session.query(ProcessedLog).delete()
    db_session.query(IndexerState).delete()
    db_session.query(UserPosition).delete()
    db_session.query(SharePricePoint).delete()
    db_session.query(VaultRegistryEntry).delete()
    db_session.query(VaultRegistry).delete()
    db_session.query(Vault).delete()
    db_session.commit()


@pytest.fixture
def reader():
    return FakeVaultReader()
