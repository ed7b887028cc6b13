from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from models.types import Uint256


def user_position_id(user_address: str, vault_address: str) -> str:
    return f"{user_address.lower()}-{vault_address.lower()}"


class UserPosition(SQLModel, table=True):
    __tablename__ = "user_positions"

    # "{user}-{vault}"
    id: str = Field(primary_key=True)
    user: str = Field(index=True)
    vault_id: str = Field(index=True)
    total_quote_deposited: int = Field(
        default=0, sa_column=Column(Uint256, nullable=False)
    )
    total_quote_withdrawn: int = Field(
        default=0, sa_column=Column(Uint256, nullable=False)
    )
    total_base_returned: int = Field(
        default=0, sa_column=Column(Uint256, nullable=False)
    )
    current_shares: int = Field(default=0, sa_column=Column(Uint256, nullable=False))
    last_updated_at: int
