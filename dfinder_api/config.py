from typing import List

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    dfinder_db_host: str = "localhost"
    dfinder_db_port: int = 5432
    dfinder_db_user: str = "dfinder"
    dfinder_db_password: str = "dfinder"
    dfinder_db_name: str = "dfinder"

    # API
    api_title: str = "DFINDER API"
    api_version: str = "0.1.0"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_log_level: str = "info"
    api_prefix: str = "/api/dfinder"

    api_cors_origins: List[AnyHttpUrl] = Field(default_factory=list)
    api_keys: List[str] = Field(
        default_factory=list,
        description="Allowed API keys for protected endpoints.",
    )
    default_similar_limit: int = 25
    max_similar_limit: int = 100

    @property
    def dfinder_db_dsn(self) -> str:
        return (
            f"postgresql+asyncpg://{self.dfinder_db_user}:"
            f"{self.dfinder_db_password}@{self.dfinder_db_host}:"
            f"{self.dfinder_db_port}/{self.dfinder_db_name}"
        )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


settings = Settings()
