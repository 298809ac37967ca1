"""Data models for the RDB metadata package."""

from .config import AppConfig
from .game import GameRecord

__all__ = [
    "AppConfig",
    "GameRecord",
]
