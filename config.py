from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WIKI_", env_file=".env", extra="ignore")

    app_name: str = "revwiki"
    database_url: str = "sqlite+aiosqlite:///./wiki.db"  # Default to SQLite
    default_page: str = "sample_doc"
    anonymous_author: str = "Anonymous"
    history_limit: int = 50
    storage_timeout: float = 10.0  # seconds, per storage call
    host: str = "127.0.0.1"
    port: int = 3000
