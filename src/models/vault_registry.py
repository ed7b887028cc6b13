from typing import List

import sqlmodel


class VaultRegistryEntry(sqlmodel.SQLModel, table=True):
    __tablename__ = "vault_registry_entries"

    factory: str = sqlmodel.Field(foreign_key="vault_registry.id", primary_key=True)
    vault_address: str = sqlmodel.Field(primary_key=True)
    # registration order within the factory
    position: int

    registry: "VaultRegistry" = sqlmodel.Relationship(back_populates="entries")


class VaultRegistry(sqlmodel.SQLModel, table=True):
    __tablename__ = "vault_registry"

    # factory address
    id: str = sqlmodel.Field(primary_key=True)
    factory: str
    count: int = 0

    entries: List[VaultRegistryEntry] = sqlmodel.Relationship(
        back_populates="registry",
        sa_relationship_kwargs={"order_by": "VaultRegistryEntry.position"},
    )
