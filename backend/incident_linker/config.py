from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# backend/, where the shipped config/ directory lives
_BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    DATABASE_URL: str = "sqlite:///./incidents.db"
    DEDUP_CONFIG: str = str(_BACKEND_DIR / "config" / "dedup.yaml")
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # Batch cross-source deduplication
    DEDUP_LOOKBACK_DAYS: int = 30
    DEDUP_MAX_RECORDS: int = 500
    DEDUP_CONFIDENCE_THRESHOLD: float = 0.7
    # Reporting label only; does not change the merge path
    DEDUP_HIGH_CONFIDENCE_THRESHOLD: float = 0.8
    DEDUP_MAX_TIME_HOURS: float = 48.0
    DEDUP_MAX_DISTANCE_KM: float = 50.0
    # Ingest-time matching against canonical incidents
    MATCH_WINDOW_HOURS: float = 48.0
    MATCH_MAX_DISTANCE_KM: float = 50.0
    MATCH_THRESHOLD: float = 0.75
    MAX_QUERY_LIMIT: int = 5000


settings = Settings()
