from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field, validator

class Settings(BaseSettings):
    # RPC
    rpc_url: str = Field(default="http://localhost:8545", description="Ethereum JSON-RPC endpoint")
    rpc_timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    rpc_max_connections: int = 10
    rpc_retry_attempts: int = Field(default=3, description="Attempts per RPC call on transport errors")
    network_id: Optional[int] = Field(default=None, description="Skip eth_chainId lookup when set")

    # Contract addresses (Ethereum mainnet)
    cdp_manager: str = "0x5ef30b9986345249bc32d8928b7ee64de9435e39"
    mcd_vat: str = "0x35d1b3f3d7966a1dfe207aa4514c12a259a0492b"
    mcd_join_dai: str = "0x9759a6ac90977b93b58547b4a71c78317f391a28"
    mcd_join_sai: str = "0xad37fd42185ba63009177058208dd1be4b136e6b"
    migration: str = "0xc73e0383f3aff3215e6f04b0331d58cecf0ab849"

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @validator("cdp_manager", "mcd_vat", "mcd_join_dai", "mcd_join_sai", "migration")
    def lowercase_address(cls, v):
        return v.lower()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
