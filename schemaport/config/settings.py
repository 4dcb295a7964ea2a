# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache


class Settings(BaseSettings):
    # Metadata store
    database_url: str = "sqlite+aiosqlite:///./schemaport.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Export defaults
    output_dir: str = "./mappings"
    default_destination_type: str = "postgres"
    default_schema_version: str = "1.0-default-generated"
    default_mapping_version: str = "1.0"

    # Source/destination stores
    store_timeout_seconds: float = 30.0
    destination_pool_size: int = 5

    # Admin console
    admin_host: str = "127.0.0.1"
    admin_port: int = 8080

    class Config:
        env_file = ".env"
        env_prefix = "SCHEMAPORT_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
