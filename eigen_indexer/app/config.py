"""Config file."""
from decimal import Decimal
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from eigen_indexer.app.domain.networks import Network, get_network


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("eigen-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = None
    sync_database_url: str | None = None

    # CHAIN
    network_name: str = Field("mainnet", alias="NETWORK")
    network_chain_rpc_url: str | None = Field(None, alias="NETWORK_CHAIN_RPC_URL")
    rpc_timeout_s: float = Field(30, alias="RPC_TIMEOUT_S")

    # SYNC
    sync_batch_size: int = Field(4999, alias="SYNC_BATCH_SIZE", gt=0)
    write_chunk_size: int = Field(1000, alias="WRITE_CHUNK_SIZE", gt=0)

    # METRICS
    # strategy address -> price of one strategy unit in ETH
    strategy_eth_prices: dict[str, Decimal] = Field(default_factory=dict, alias="STRATEGY_ETH_PRICES")

    @field_validator("network_name")
    @classmethod
    def known_network(cls, value: str) -> str:
        return get_network(value).name

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"
        if not self.sync_database_url:
            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    @property
    def network(self) -> Network:
        return get_network(self.network_name)

    @property
    def rpc_url(self) -> str:
        return self.network_chain_rpc_url or self.network.default_rpc_url

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings: Settings = Settings()
