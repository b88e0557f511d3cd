"""Application configuration using Pydantic Settings."""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_NEO4J_PASSWORD = "secretgraph"


class Neo4jSettings(BaseSettings):
    """Neo4j connection settings."""

    model_config = SettingsConfigDict(env_prefix="NEO4J_")

    uri: str = "neo4j://localhost:7687"
    user: str = "neo4j"
    password: str = DEFAULT_NEO4J_PASSWORD
    database: Optional[str] = None


class StoreSettings(BaseSettings):
    """Backing store selection and per-call deadline."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: Literal["neo4j", "sqlite"] = "neo4j"
    sqlite_path: str = "data/establishment.db"
    timeout: float = 5.0


class AuthSettings(BaseSettings):
    """Session and password hashing settings."""

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    session_ttl_seconds: int = 24 * 60 * 60
    cookie_name: str = "session_id"
    cookie_secure: bool = False
    bcrypt_rounds: int = 12


class ServerSettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = ["http://localhost:5500", "http://127.0.0.1:5500"]
    static_dir: str = "static"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    neo4j: Neo4jSettings = Neo4jSettings()
    store: StoreSettings = StoreSettings()
    auth: AuthSettings = AuthSettings()
    server: ServerSettings = ServerSettings()


settings = Settings()
