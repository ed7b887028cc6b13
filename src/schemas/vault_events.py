from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import BaseModel, field_validator
from sqlmodel import SQLModel

from models.share_price_point import SharePricePoint


class VaultEventBase(BaseModel):
    # emitting contract
    address: str
    block_number: int
    timestamp: int
    tx_hash: Optional[str] = None
    log_index: Optional[int] = None

    @field_validator("address", "user", "vault", mode="before", check_fields=False)
    def lowercase_address(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def log_id(self) -> Optional[str]:
        if self.tx_hash is None or self.log_index is None:
            return None
        return f"{self.tx_hash.lower()}-{self.log_index}"


class VaultCreatedEvent(VaultEventBase):
    user: str
    vault: str


class DepositEvent(VaultEventBase):
    user: str
    quote_amount: int
    shares_minted: int


class WithdrawEvent(VaultEventBase):
    user: str
    quote_returned: int
    base_returned: int
    shares_burned: int


class RebalanceEvent(VaultEventBase):
    pass


class RebalancedEvent(VaultEventBase):
    pass


VaultEvent = Union[
    VaultCreatedEvent, DepositEvent, WithdrawEvent, RebalanceEvent, RebalancedEvent
]


@dataclass
class EventResult:
    entities: List[SQLModel] = field(default_factory=list)
    # contract addresses the delivery side must start watching
    watch_targets: List[str] = field(default_factory=list)
    snapshot: Optional[SharePricePoint] = None
    skipped: bool = False
