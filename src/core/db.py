import logging

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from core.config import settings
from models import (
    IndexerState,
    ProcessedLog,
    SharePricePoint,
    UserPosition,
    Vault,
    VaultRegistry,
    VaultRegistryEntry,
)

logger = logging.getLogger(__name__)


def _create_engine(uri: str):
    if uri.startswith("sqlite"):
        # in-memory databases must share one connection across sessions
        return create_engine(
            uri,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(uri, pool_pre_ping=True)


engine = _create_engine(str(settings.SQLALCHEMY_DATABASE_URI))


# make sure all SQLModel models are imported (models) before initializing DB
# otherwise, SQLModel might fail to initialize relationships properly
# for more details: https://github.com/tiangolo/full-stack-fastapi-postgresql/issues/28


def init_db(db_engine=None):
    db_engine = db_engine or engine
    SQLModel.metadata.create_all(db_engine)
    logger.info("Database schema ready")

