from typing import List, Optional
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, ValidationError
from .exceptions import ConfigurationError

class ConnectionProfile(BaseModel):
    alias: str
    host: str
    port: int = 8123
    username: str = "default"
    password: str = ""
    database: str = "default"

class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHBRIDGE_", env_nested_delimiter="__")

    connections: List[ConnectionProfile] = []

    # Transfer tuning
    batch_size: int = Field(default=1000, gt=0)
    read_chunk_size: int = Field(default=10000, gt=0)
    preview_limit: int = Field(default=5, gt=0)
    export_dir: Path = Path("exports")
    default_table: str = "default_table"

    # Handle options (seconds)
    connect_timeout: int = 10
    query_timeout: int = 300
    insert_timeout: int = 300
    verify_tls: bool = True
    compression: Optional[str] = "gzip"
    async_insert: bool = True

    log_level: str = "INFO"

    @classmethod
    def from_yaml(cls, config_path: Path) -> "AppConfig":
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                raw_config = yaml.safe_load(f) or {}
            return cls(**raw_config)
        except (ValidationError, yaml.YAMLError, TypeError) as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")

    def get_connection(self, alias: str) -> ConnectionProfile:
        for profile in self.connections:
            if profile.alias == alias:
                return profile
        raise ConfigurationError(f"Connection alias '{alias}' not found in config")
