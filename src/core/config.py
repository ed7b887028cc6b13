from typing import Any, List, Optional

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    ENVIRONMENT_NAME: str = "Development"

    @property
    def is_production(self):
        return self.ENVIRONMENT_NAME == "Production"

    PROJECT_NAME: str = "vault-pps-indexer"

    # Monad mainnet
    RPC_URL: str = "https://rpc.monad.xyz"
    CHAIN_ID: int = 143

    # MONUSDC, MONAUSD vault factories
    FACTORY_ADDRESSES: str = (
        "0xccb57703b65a8643401b11cb40878f8ce0d622a3,"
        "0x79b99a1e9ff8f16a198dac4b42fd164680487062"
    )

    @property
    def factory_addresses(self) -> List[str]:
        v = self.FACTORY_ADDRESSES.strip()
        if v.startswith("["):
            v = v.strip("[]").replace('"', "")
        return [i.strip().lower() for i in v.split(",") if i.strip()]

    START_BLOCK: int = 0
    SNAPSHOT_BLOCK_INTERVAL: int = 100
    LOG_CHUNK_SIZE: int = 1000
    CONFIRMATION_BLOCKS: int = 0
    LISTENER_POLL_INTERVAL: float = 2.0
    LISTENER_RETRY_DELAY: float = 5.0

    SNAPSHOT_READ_RETRIES: int = 0
    SNAPSHOT_READ_RETRY_BACKOFF: float = 0.5

    @field_validator("SNAPSHOT_BLOCK_INTERVAL", "LOG_CHUNK_SIZE")
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    POSTGRES_SERVER: Optional[str] = None
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_DB: Optional[str] = None
    SQLALCHEMY_DATABASE_URI: str | None = Field(default=None, validate_default=True)

    # Seq log
    SEQ_SERVER_URL: Optional[str] = None
    SEQ_SERVER_API_KEY: Optional[str] = None

    @field_validator("SQLALCHEMY_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: str | None, info: ValidationInfo) -> Any:
        if isinstance(v, str):
            return v
        return str(
            PostgresDsn.build(
                scheme="postgresql+psycopg",
                username=info.data.get("POSTGRES_USER"),
                password=info.data.get("POSTGRES_PASSWORD"),
                host=info.data.get("POSTGRES_SERVER") or "localhost",
                path=f"{info.data.get('POSTGRES_DB') or ''}",
            )
        )

    class Config:
        case_sensitive = True
        env_file = "../.env"
        extra = "allow"


settings = Settings()
