"""Application configuration

Connection settings and gesture timings, loaded from environment variables
or a local .env file.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables"""

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    playlists_table: str = "channel_playlists"
    channels_table: str = "channels"
    content_table: str = "content"

    # Gesture / refresh timings (milliseconds)
    drag_cooldown_ms: int = 500
    refresh_debounce_ms: int = 1000
    external_change_suppress_ms: int = 2000

    # Reconciliation refetch
    refresh_max_attempts: int = 3
    refresh_initial_delay: float = 0.5

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
