"""Decoder and metadata tools for libretro RDB game databases."""

from .models import GameRecord
from .names import display_name, region_hint
from .services.rdb_parser import RdbDatabase, load, parse

__version__ = "0.1.0"

__all__ = [
    "GameRecord",
    "RdbDatabase",
    "display_name",
    "load",
    "parse",
    "region_hint",
]
