# import dependencies
import asyncio
import heapq
import itertools
import logging
import traceback
from typing import Iterable, Optional

import click
from sqlmodel import Session, select
from web3 import Web3

from bg_tasks.periodic_snapshot import is_sweep_block, run_periodic_snapshot
from core import constants
from core.config import settings
from core.constants import SnapshotSource
from core.db import engine, init_db
from log import setup_logging_to_console, setup_logging_to_file
from models import IndexerState, ProcessedLog, UserPosition, Vault
from models.indexer_state import utc_now
from models.user_positions import user_position_id
from schemas.vault_events import (
    DepositEvent,
    EventResult,
    RebalancedEvent,
    RebalanceEvent,
    VaultCreatedEvent,
    VaultEvent,
    WithdrawEvent,
)
from services.snapshot_service import snapshot_vault
from services.vault_reader_service import VaultReaderService
from services.vault_registry_service import list_all_vaults, register_vault

logger = logging.getLogger(__name__)

_codec_w3 = Web3()
_factory_contract = _codec_w3.eth.contract(abi=constants.VAULT_FACTORY_ABI)
_vault_contract = _codec_w3.eth.contract(abi=constants.QUOTE_ONLY_VAULT_ABI)


def _to_hex(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value).lower()
    value = str(value).lower()
    return value if value.startswith("0x") else f"0x{value}"


def _envelope(log, timestamp: int) -> dict:
    return {
        "address": log["address"],
        "block_number": int(log["blockNumber"]),
        "timestamp": timestamp,
        "tx_hash": _to_hex(log["transactionHash"]),
        "log_index": int(log["logIndex"]),
    }


def decode_log(log, timestamp: int) -> Optional[VaultEvent]:
    """Decode a raw eth_getLogs entry into a typed vault event."""
    if not log["topics"]:
        return None
    topic = _to_hex(log["topics"][0])

    if topic == constants.VAULT_CREATED_EVENT_TOPIC:
        args = _factory_contract.events.VaultCreated().process_log(log)["args"]
        return VaultCreatedEvent(
            **_envelope(log, timestamp), user=args["user"], vault=args["vault"]
        )
    if topic == constants.DEPOSIT_EVENT_TOPIC:
        args = _vault_contract.events.Deposit().process_log(log)["args"]
        return DepositEvent(
            **_envelope(log, timestamp),
            user=args["user"],
            quote_amount=args["quoteAmount"],
            shares_minted=args["sharesMinted"],
        )
    if topic == constants.WITHDRAW_EVENT_TOPIC:
        args = _vault_contract.events.Withdraw().process_log(log)["args"]
        return WithdrawEvent(
            **_envelope(log, timestamp),
            user=args["user"],
            quote_returned=args["quoteReturned"],
            base_returned=args["baseReturned"],
            shares_burned=args["sharesBurned"],
        )
    if topic == constants.REBALANCE_EVENT_TOPIC:
        return RebalanceEvent(**_envelope(log, timestamp))
    if topic == constants.REBALANCED_EVENT_TOPIC:
        return RebalancedEvent(**_envelope(log, timestamp))
    return None


def _get_user_position(
    session: Session, user: str, vault_address: str, timestamp: int
) -> UserPosition:
    position_id = user_position_id(user, vault_address)
    position = session.get(UserPosition, position_id)
    if position is None:
        position = UserPosition(
            id=position_id,
            user=user.lower(),
            vault_id=vault_address.lower(),
            last_updated_at=timestamp,
        )
    return position


async def handle_vault_created(
    session: Session, reader: VaultReaderService, event: VaultCreatedEvent
) -> EventResult:
    factory = event.address
    vault = session.get(Vault, event.vault)
    if vault is None:
        vault = Vault(
            id=event.vault,
            user=event.user,
            factory=factory,
            created_at=event.timestamp,
            created_at_block=event.block_number,
            is_active=True,
        )
        session.add(vault)
        logger.info("Vault %s created by %s via factory %s", event.vault, event.user, factory)
    else:
        logger.info("Vault %s already exists, keep current state", event.vault)

    register_vault(session, factory, event.vault)

    # all future Deposit / Withdraw / Rebalance / Rebalanced events of the
    # clone are routed to the vault handlers below
    return EventResult(entities=[vault], watch_targets=[event.vault])


async def handle_deposit_event(
    session: Session, reader: VaultReaderService, event: DepositEvent
) -> EventResult:
    point = await snapshot_vault(
        session, reader, event.address, event.block_number, event.timestamp, SnapshotSource.DEPOSIT
    )

    position = _get_user_position(session, event.user, event.address, event.timestamp)
    position.total_quote_deposited += event.quote_amount
    position.current_shares += event.shares_minted
    position.last_updated_at = event.timestamp
    session.add(position)
    logger.info(
        "User deposit %s vault %s amount = %s, shares = %s",
        event.user,
        event.address,
        event.quote_amount,
        event.shares_minted,
    )
    return EventResult(entities=[position], snapshot=point)


async def handle_withdraw_event(
    session: Session, reader: VaultReaderService, event: WithdrawEvent
) -> EventResult:
    point = await snapshot_vault(
        session, reader, event.address, event.block_number, event.timestamp, SnapshotSource.WITHDRAW
    )

    position = _get_user_position(session, event.user, event.address, event.timestamp)
    prev_shares = position.current_shares
    if event.shares_burned > prev_shares:
        logger.warning(
            "User %s burned %s shares of vault %s but only %s recorded, clamp to 0",
            event.user,
            event.shares_burned,
            event.address,
            prev_shares,
        )
        current_shares = 0
    else:
        current_shares = prev_shares - event.shares_burned

    position.total_quote_withdrawn += event.quote_returned
    position.total_base_returned += event.base_returned
    position.current_shares = current_shares
    position.last_updated_at = event.timestamp
    session.add(position)
    entities = [position]
    logger.info(
        "User withdraw %s vault %s quote = %s, base = %s, shares = %s",
        event.user,
        event.address,
        event.quote_returned,
        event.base_returned,
        event.shares_burned,
    )

    # full exit of the position
    if current_shares == 0:
        vault = session.get(Vault, event.address)
        if vault is not None:
            vault.is_active = False
            session.add(vault)
            entities.append(vault)
            logger.info("Vault %s marked inactive", event.address)

    return EventResult(entities=entities, snapshot=point)


async def handle_rebalance_event(
    session: Session, reader: VaultReaderService, event: RebalanceEvent
) -> EventResult:
    point = await snapshot_vault(
        session, reader, event.address, event.block_number, event.timestamp, SnapshotSource.REBALANCE
    )
    return EventResult(snapshot=point)


async def handle_rebalanced_event(
    session: Session, reader: VaultReaderService, event: RebalancedEvent
) -> EventResult:
    point = await snapshot_vault(
        session, reader, event.address, event.block_number, event.timestamp, SnapshotSource.REBALANCED
    )
    return EventResult(snapshot=point)


event_handlers = {
    VaultCreatedEvent: handle_vault_created,
    DepositEvent: handle_deposit_event,
    WithdrawEvent: handle_withdraw_event,
    RebalanceEvent: handle_rebalance_event,
    RebalancedEvent: handle_rebalanced_event,
}


async def route_event(
    session: Session, reader: VaultReaderService, event: VaultEvent
) -> EventResult:
    """Apply one event and commit its unit of work.

    Events carrying a (tx_hash, log_index) are recorded in the processed-log
    ledger in the same commit as their position updates, so re-delivery is a
    no-op.
    """
    log_id = event.log_id
    if log_id is not None and session.get(ProcessedLog, log_id) is not None:
        logger.info("Log %s already processed", log_id)
        return EventResult(skipped=True)

    handler = event_handlers.get(type(event))
    if handler is None:
        raise ValueError(f"No handler for event {type(event).__name__}")

    result = await handler(session, reader, event)

    if log_id is not None:
        session.add(
            ProcessedLog(
                id=log_id,
                block_number=event.block_number,
                event_name=type(event).__name__,
            )
        )
    session.commit()
    return result


def get_latest_block(session: Session, chain_id: int) -> Optional[int]:
    state = session.exec(
        select(IndexerState).where(IndexerState.chain_id == chain_id)
    ).first()
    if state is None:
        return None
    return state.latest_block


def save_latest_block(session: Session, chain_id: int, block_number: int):
    state = session.exec(
        select(IndexerState).where(IndexerState.chain_id == chain_id)
    ).first()
    if state is None:
        state = IndexerState(chain_id=chain_id, latest_block=block_number)
    else:
        state.latest_block = block_number
        state.updated_at = utc_now()
    session.add(state)
    session.commit()


def _log_key(log) -> tuple:
    return (int(log["blockNumber"]), int(log["logIndex"]))


class VaultEventListener:
    """Sequential driver: feeds logs and block ticks to the router in chain order."""

    TICK = float("inf")

    def __init__(
        self,
        session: Session,
        reader: VaultReaderService,
        factories: Optional[Iterable[str]] = None,
        chain_id: int = settings.CHAIN_ID,
        block_interval: int = settings.SNAPSHOT_BLOCK_INTERVAL,
        chunk_size: int = settings.LOG_CHUNK_SIZE,
    ):
        self.session = session
        self.reader = reader
        self.factories = [
            f.lower()
            for f in (factories if factories is not None else settings.factory_addresses)
        ]
        self.chain_id = chain_id
        self.block_interval = block_interval
        self.chunk_size = chunk_size
        self.watched = set(self.factories) | set(
            list_all_vaults(session, self.factories)
        )
        self._seq = itertools.count()

    def _push(self, heap: list, key: tuple, kind: str, payload):
        heapq.heappush(heap, (key, next(self._seq), kind, payload))

    async def _block_timestamp(self, cache: dict, block_number: int) -> int:
        if block_number not in cache:
            timestamp = await self.reader.get_block_timestamp(block_number)
            if timestamp is None:
                raise RuntimeError(f"Block {block_number} timestamp unavailable")
            cache[block_number] = timestamp
        return cache[block_number]

    async def process_range(self, from_block: int, to_block: int) -> int:
        """Process every watched log and tick in [from_block, to_block].

        Returns the number of events routed.
        """
        heap: list = []
        logs = await self.reader.get_logs(sorted(self.watched), from_block, to_block)
        for log in logs:
            self._push(heap, _log_key(log), "log", log)

        for block_number in range(from_block, to_block + 1):
            if is_sweep_block(block_number, self.block_interval):
                self._push(heap, (block_number, self.TICK), "tick", block_number)

        timestamps: dict = {}
        routed = 0
        while heap:
            key, _, kind, payload = heapq.heappop(heap)
            if kind == "tick":
                await run_periodic_snapshot(self.session, self.reader, payload, self.factories)
                continue

            timestamp = await self._block_timestamp(timestamps, key[0])
            event = decode_log(payload, timestamp)
            if event is None:
                continue

            result = await route_event(self.session, self.reader, event)
            routed += 1
            for target in result.watch_targets:
                if target in self.watched:
                    continue
                self.watched.add(target)
                # the clone may emit events later in this same window
                new_logs = await self.reader.get_logs([target], key[0], to_block)
                for log in new_logs:
                    if _log_key(log) > key:
                        self._push(heap, _log_key(log), "log", log)
                logger.info("Watching new vault %s from block %s", target, key[0])

        save_latest_block(self.session, self.chain_id, to_block)
        logger.info(
            "Processed blocks %s-%s: %d events, %d watched contracts",
            from_block,
            to_block,
            routed,
            len(self.watched),
        )
        return routed

    async def run(
        self,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        once: bool = False,
    ):
        if from_block is None:
            latest_block = get_latest_block(self.session, self.chain_id)
            from_block = settings.START_BLOCK if latest_block is None else latest_block + 1
        logger.info("Start listening from block %s", from_block)

        start = from_block
        while True:
            try:
                head = await self.reader.get_latest_block_number() - settings.CONFIRMATION_BLOCKS
                if to_block is not None:
                    head = min(head, to_block)

                if to_block is not None and start > to_block:
                    break
                if start > head:
                    if once:
                        break
                    await asyncio.sleep(settings.LISTENER_POLL_INTERVAL)
                    continue

                end = min(start + self.chunk_size - 1, head)
                await self.process_range(start, end)
                start = end + 1
            except Exception as e:
                logger.error(f"Error: {e}")
                logger.error(traceback.format_exc())
                self.session.rollback()
                if once:
                    raise e
                await asyncio.sleep(settings.LISTENER_RETRY_DELAY)
                # resume from the last committed cursor
                latest_block = get_latest_block(self.session, self.chain_id)
                if latest_block is not None:
                    start = latest_block + 1

        logger.info("Stop listening at block %s", start - 1)


async def run(from_block: Optional[int], to_block: Optional[int], once: bool):
    logger.info("Starting vault event listener for chain %s", settings.CHAIN_ID)
    reader = VaultReaderService()
    with Session(engine) as session:
        listener = VaultEventListener(session, reader)
        await listener.run(from_block=from_block, to_block=to_block, once=once)


@click.command()
@click.option("--from-block", type=int, default=None, help="First block to index (default: resume)")
@click.option("--to-block", type=int, default=None, help="Stop after this block")
@click.option("--once", is_flag=True, default=False, help="Exit once caught up with the chain head")
def main(from_block: Optional[int], to_block: Optional[int], once: bool):
    setup_logging_to_console()
    setup_logging_to_file(
        app=f"vault_event_listener_{settings.CHAIN_ID}", level=logging.INFO, logger=logger
    )
    init_db()
    asyncio.run(run(from_block, to_block, once))


if __name__ == "__main__":
    main()
