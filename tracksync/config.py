"""Application configuration"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    database_url: str = "sqlite:///./tracksync.db"

    # Sync
    default_sync_interval_minutes: int = 10
    # Failed timeline replays per remote issue before it is left dirty for manual intervention.
    timeline_max_attempts: int = 7
    # Incremental discovery re-reads this much history to tolerate clock skew.
    issue_update_overlap_minutes: int = 2
    gitlab_per_page: int = 100
    # Dereplication strategy used for projects that don't configure one ("invasive" or "none").
    default_dereplicator: str = "invasive"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
