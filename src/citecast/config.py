from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Citecast"

    # PostgreSQL in production, SQLite for local runs and tests
    database_url: str = "sqlite:///./citecast.db"
    db_pool_size: int = 20
    db_max_overflow: int = 40
    db_pool_recycle: int = 3600
    db_pool_pre_ping: bool = True

    # Generic environment (debug/prod)
    APP_ENV: str = "local"  # or "production"
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # Generative model
    openai_api_key: str = ""
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 8192
    llm_max_retries: int = 3
    transcription_model: str = "whisper-1"

    # Job pipeline
    cron_secret: str = ""
    job_lock_timeout_seconds: int = 300
    job_max_attempts: int = 3
    sweep_batch_size: int = 5
    worker_interval_seconds: int = 60

    # Chunking
    chunk_max_size: int = 1500
    chunk_overlap_size: int = 200

    # Sources
    fetch_timeout_seconds: int = 30
    max_upload_bytes: int = 50 * 1024 * 1024

    @field_validator("database_url")
    @classmethod
    def check_database_url(cls, value: str) -> str:
        if not value.startswith(("postgresql", "sqlite")):
            raise ValueError(
                f"Invalid DATABASE_URL: {value}\n"
                "Citecast supports PostgreSQL (production) or SQLite (local development)."
            )
        return value

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
