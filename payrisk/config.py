"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "payrisk"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    log_json: bool = True

    # Upper bound on a single historical store lookup
    history_lookup_timeout_seconds: float = 0.25

    # Lock stripes for the velocity tracker
    velocity_shard_count: int = 64

    model_config = {"env_prefix": "PAYRISK_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
