import logging
from typing import Iterable, List

from sqlmodel import Session, select

from models import VaultRegistry, VaultRegistryEntry

logger = logging.getLogger(__name__)


def get_or_create_registry(session: Session, factory: str) -> VaultRegistry:
    factory = factory.lower()
    registry = session.get(VaultRegistry, factory)
    if registry is None:
        registry = VaultRegistry(id=factory, factory=factory, count=0)
        session.add(registry)
    return registry


def register_vault(session: Session, factory: str, vault_address: str) -> bool:
    """Add ``vault_address`` to the factory's registry.

    Set semantics: a replayed creation event does not duplicate the entry.
    Returns True when a new entry was added. The caller commits.
    """
    factory = factory.lower()
    vault_address = vault_address.lower()

    registry = get_or_create_registry(session, factory)
    existing = session.get(VaultRegistryEntry, (factory, vault_address))
    if existing is not None:
        logger.info("Vault %s already registered under factory %s", vault_address, factory)
        return False

    session.add(
        VaultRegistryEntry(
            factory=factory, vault_address=vault_address, position=registry.count
        )
    )
    registry.count += 1
    session.add(registry)
    logger.info(
        "Registered vault %s under factory %s (count=%s)",
        vault_address,
        factory,
        registry.count,
    )
    return True


def list_vaults(session: Session, factory: str) -> List[str]:
    entries = session.exec(
        select(VaultRegistryEntry)
        .where(VaultRegistryEntry.factory == factory.lower())
        .order_by(VaultRegistryEntry.position)
    ).all()
    return [entry.vault_address for entry in entries]


def list_all_vaults(session: Session, factories: Iterable[str]) -> List[str]:
    seen = set()
    vault_addresses = []
    for factory in factories:
        for vault_address in list_vaults(session, factory):
            if vault_address not in seen:
                seen.add(vault_address)
                vault_addresses.append(vault_address)
    return vault_addresses
