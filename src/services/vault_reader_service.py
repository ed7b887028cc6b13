import asyncio
import logging
from typing import NamedTuple, Optional

from web3 import AsyncWeb3, Web3

from core.config import settings
from core.constants import QUOTE_ONLY_VAULT_ABI

logger = logging.getLogger(__name__)


class VaultTotals(NamedTuple):
    total_assets: int
    total_supply: int


class VaultReaderService:
    """Point-in-time reads against vault contracts.

    Reads are never cached: state differs per block. Failures (reverts right
    after deployment, RPC errors) are reported as ``None`` so callers can skip
    the snapshot and rely on the next trigger.
    """

    def __init__(
        self,
        w3: Optional[AsyncWeb3] = None,
        retries: int = settings.SNAPSHOT_READ_RETRIES,
        retry_backoff: float = settings.SNAPSHOT_READ_RETRY_BACKOFF,
    ):
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.RPC_URL))
        self.retries = max(0, retries)
        self.retry_backoff = retry_backoff

    def get_vault_contract(self, vault_address: str):
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(vault_address),
            abi=QUOTE_ONLY_VAULT_ABI,
        )

    async def _read_totals_once(self, vault_address: str, block_number: int) -> VaultTotals:
        vault_contract = self.get_vault_contract(vault_address)
        total_assets, total_supply = await asyncio.gather(
            vault_contract.functions.totalAssets().call(block_identifier=block_number),
            vault_contract.functions.totalSupply().call(block_identifier=block_number),
        )
        return VaultTotals(int(total_assets), int(total_supply))

    async def read_totals(self, vault_address: str, block_number: int) -> Optional[VaultTotals]:
        for attempt in range(self.retries + 1):
            try:
                return await self._read_totals_once(vault_address, block_number)
            except Exception as e:
                if attempt < self.retries:
                    await asyncio.sleep(self.retry_backoff * (attempt + 1))
                    continue
                logger.warning(
                    "eth_call failed for %s @ %s: %s", vault_address, block_number, e
                )
        return None

    async def get_block_timestamp(self, block_number: int) -> Optional[int]:
        try:
            block = await self.w3.eth.get_block(block_number)
            return int(block["timestamp"])
        except Exception as e:
            logger.warning("Failed to fetch block %s: %s", block_number, e)
            return None

    async def get_latest_block_number(self) -> int:
        return int(await self.w3.eth.block_number)

    async def get_logs(self, addresses: list[str], from_block: int, to_block: int) -> list:
        if not addresses:
            return []
        return await self.w3.eth.get_logs(
            {
                "address": [Web3.to_checksum_address(a) for a in addresses],
                "fromBlock": from_block,
                "toBlock": to_block,
            }
        )
