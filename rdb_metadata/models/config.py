"""Configuration data models."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    metadata_directory: Path
    artwork_directory: Path
    rdb_name: str  # libretro-database system name
    thumbnail_repo: str  # libretro-thumbnails repository name
    rdb_base_url: str = "https://github.com/libretro/libretro-database/raw/refs/heads/master/rdb"
    thumbnail_base_url: str = "https://github.com/libretro-thumbnails"
    http_timeout: float = 30.0
    max_retries: int = 3
    log_level: str = "INFO"
