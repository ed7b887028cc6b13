from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IndexerState(SQLModel, table=True):
    __tablename__ = "indexer_state"

    id: Optional[int] = Field(default=None, primary_key=True)
    chain_id: int = Field(index=True, unique=True)
    # last block whose events and ticks are fully committed
    latest_block: int
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class ProcessedLog(SQLModel, table=True):
    __tablename__ = "processed_logs"

    # "{tx_hash}-{log_index}"
    id: str = Field(primary_key=True)
    block_number: int = Field(index=True)
    event_name: str
