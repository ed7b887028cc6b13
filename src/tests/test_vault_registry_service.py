from sqlmodel import Session

from models import VaultRegistry
from services.vault_registry_service import list_all_vaults, list_vaults, register_vault

FACTORY_A = "0xccb57703b65a8643401b11cb40878f8ce0d622a3"
FACTORY_B = "0x79b99a1e9ff8f16a198dac4b42fd164680487062"
VAULT_1 = "0x1111111111111111111111111111111111111111"
VAULT_2 = "0x2222222222222222222222222222222222222222"
VAULT_3 = "0x3333333333333333333333333333333333333333"


def test_register_vault_keeps_order(db_session: Session):
    assert register_vault(db_session, FACTORY_A, VAULT_2)
    assert register_vault(db_session, FACTORY_A, VAULT_1)
    db_session.commit()

    assert list_vaults(db_session, FACTORY_A) == [VAULT_2, VAULT_1]
    registry = db_session.get(VaultRegistry, FACTORY_A)
    assert registry.count == 2
    assert registry.factory == FACTORY_A


def test_register_vault_is_idempotent(db_session: Session):
    assert register_vault(db_session, FACTORY_A, VAULT_1)
    db_session.commit()
    assert not register_vault(db_session, FACTORY_A, VAULT_1.upper().replace("0X", "0x"))
    db_session.commit()

    assert list_vaults(db_session, FACTORY_A) == [VAULT_1]
    assert db_session.get(VaultRegistry, FACTORY_A).count == 1


def test_register_vault_lowercases_addresses(db_session: Session):
    register_vault(db_session, FACTORY_A.upper().replace("0X", "0x"), "0xAbCdEf0000000000000000000000000000000001")
    db_session.commit()

    assert list_vaults(db_session, FACTORY_A) == ["0xabcdef0000000000000000000000000000000001"]


def test_list_vaults_unknown_factory(db_session: Session):
    assert list_vaults(db_session, FACTORY_B) == []


def test_list_all_vaults_unions_factories(db_session: Session):
    register_vault(db_session, FACTORY_A, VAULT_1)
    register_vault(db_session, FACTORY_A, VAULT_2)
    register_vault(db_session, FACTORY_B, VAULT_3)
    db_session.commit()

    assert list_all_vaults(db_session, [FACTORY_A, FACTORY_B]) == [VAULT_1, VAULT_2, VAULT_3]
    assert list_all_vaults(db_session, [FACTORY_B]) == [VAULT_3]
    assert list_all_vaults(db_session, []) == []
