from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    OSRM_BASE_URL: str = "https://router.project-osrm.org"
    OSRM_PROFILE: str = "driving"
    REQUEST_TIMEOUT: float = 10.0

    MAX_NEIGHBORS: int = 12
    NEIGHBOR_CUTOFF_M: float = 1500.0

    # Graph edges are resolved N at a time with a pause between groups;
    # geometry segments are fetched one by one.
    EDGE_BATCH_SIZE: int = 5
    EDGE_BATCH_DELAY_S: float = 0.05
    GEOMETRY_DELAY_S: float = 0.15

    USE_REAL_DISTANCES: bool = True

    CACHE_DIR: Path = Path(".cache/stoproute")
    GRAPH_CACHE_MAX_AGE_S: float | None = None

    STOPS_FILE: Path | None = None
    LOGGING_MODE: str = "info"

    model_config = SettingsConfigDict(
        env_prefix="STOPROUTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
