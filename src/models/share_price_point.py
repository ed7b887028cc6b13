from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from core.constants import SnapshotSource
from models.types import ScaledUint, Uint256


def share_price_point_id(vault_address: str, block_number: int, source: str) -> str:
    return f"{vault_address.lower()}-{block_number}-{SnapshotSource(source).value}"


class SharePricePointBase(SQLModel):
    vault_id: str = Field(index=True)
    timestamp: int
    block_number: int = Field(index=True)
    share_price_e18: int = Field(sa_column=Column(ScaledUint, nullable=False))
    tvl: int = Field(sa_column=Column(Uint256, nullable=False))
    source: SnapshotSource


class SharePricePoint(SharePricePointBase, table=True):
    __tablename__ = "share_price_points"

    # "{vault}-{block}-{source}"
    id: str = Field(primary_key=True)
