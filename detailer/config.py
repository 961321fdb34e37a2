from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    storage_backend: str = "file"  # file | memory | sqlite
    data_dir: str = "data"
    db_file: str = "database.json"
    sqlite_path: str = "detailer.db"
    seed_on_empty: bool = True

    # Aggregation limits
    recent_sessions_limit: int = 50
    top_slides_limit: int = 20
    dashboard_sessions_limit: int = 4

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_file": ".env", "env_prefix": "DETAILER_", "extra": "ignore"}


settings = Settings()
