from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    redis_url: str = "redis://localhost:6379/0"

    # Live session behaviour
    stream_tick_sec: float = 1.0
    freeze_elapsed_on_end: bool = True
    reject_overlapping_foreground: bool = True

    # Schedule previews
    preview_ttl_sec: int = 60 * 60 * 6

    # Per-IP limit on session creation
    session_create_rate_limit: str = "60/minute"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://localhost",
        "http://127.0.0.1",
    ]


settings = Settings()
