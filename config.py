from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3000
    secret_key: str = "change-me"

    # Front-end files are served from here; photos live in a subdirectory
    static_dir: str = "."
    photo_dir: str = "Fotos"

    starting_budget: int = 1100
    bid_step: int = 5
    bid_timer_seconds: float = 5.0
    roulette_settle_seconds: float = 5.2
    room_code_length: int = 6

    cors_allowed_origins: str = "*"
    async_mode: str = "threading"
    log_level: str = "INFO"
    engineio_logger: bool = False

    # The Werkzeug development server only runs under async_mode "threading"
    allow_unsafe_werkzeug: bool = True

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache()
def get_settings():
    return Settings()
