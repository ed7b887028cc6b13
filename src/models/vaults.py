from typing import Optional

import sqlmodel
from sqlalchemy import Column

from models.types import ScaledUint, Uint256


class VaultBase(sqlmodel.SQLModel):
    # lowercased contract address
    id: str = sqlmodel.Field(primary_key=True)
    user: str = sqlmodel.Field(index=True)
    factory: str = sqlmodel.Field(index=True)
    created_at: int
    created_at_block: int
    is_active: bool = True


class Vault(VaultBase, table=True):
    __tablename__ = "vaults"

    latest_share_price_e18: Optional[int] = sqlmodel.Field(
        default=None, sa_column=Column(ScaledUint, nullable=True)
    )
    latest_tvl: Optional[int] = sqlmodel.Field(
        default=None, sa_column=Column(Uint256, nullable=True)
    )
    latest_snapshot_block: Optional[int] = None
