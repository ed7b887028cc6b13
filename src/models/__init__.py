from sqlmodel import Field, Relationship, SQLModel
from .vaults import Vault, VaultBase
from .share_price_point import SharePricePoint, SharePricePointBase
from .user_positions import UserPosition
from .vault_registry import VaultRegistry, VaultRegistryEntry
from .indexer_state import IndexerState, ProcessedLog
