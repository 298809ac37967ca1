"""Metadata manager: fetches, caches and queries the game database.

Downloads the system's RDB file from libretro-database, keeps the parsed
database in memory, and fetches box art from libretro-thumbnails.
"""

from pathlib import Path
from urllib.parse import quote

import httpx
import structlog

from ..models import AppConfig, GameRecord
from .errors import DownloadError, ErrorHandlingService, RdbLoadError, get_error_service
from .filesystem import FileSystemService
from .http_client import HttpClientService
from .rdb_parser import RdbDatabase, load

log = structlog.stdlib.get_logger()

RDB_FILENAME = "game.rdb"
ARTWORK_FILENAME = "boxart.png"

# Tried in order until one exists upstream
ARTWORK_TYPES = (
    "Named_Boxarts",
    "Named_Titles",
    "Named_Snaps",
)


class MetadataManager:
    """Owns the on-disk RDB file and the in-memory database parsed from it."""

    def __init__(
        self,
        config: AppConfig,
        http_client: HttpClientService,
        filesystem: FileSystemService | None = None,
        error_service: ErrorHandlingService | None = None,
    ) -> None:
        self.config = config
        self.http_client = http_client
        self.filesystem = filesystem or FileSystemService()
        self.error_service = error_service or get_error_service()
        self._database: RdbDatabase | None = None

    @property
    def rdb_path(self) -> Path:
        return self.config.metadata_directory / RDB_FILENAME

    @property
    def rdb_url(self) -> str:
        return f"{self.config.rdb_base_url}/{quote(self.config.rdb_name, safe='')}.rdb"

    def rdb_exists(self) -> bool:
        return self.rdb_path.is_file()

    async def download_rdb(self) -> Path:
        """Download the system RDB file, replacing any existing copy.

        The body is held in memory and written atomically, so a failed
        download never leaves a truncated database behind.

        Returns:
            Path of the written file

        Raises:
            DownloadError: If the download or the write fails
        """
        url = self.rdb_url
        log.info("Downloading RDB", url=url, path=str(self.rdb_path))

        try:
            data = await self.http_client.get_bytes(url)
        except httpx.HTTPStatusError as e:
            raise DownloadError(
                f"RDB download failed with status {e.response.status_code}",
                url=url,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError("Failed to download RDB", url=url, original_error=e) from e

        try:
            self.filesystem.write_bytes_atomic(data, self.rdb_path)
        except OSError as e:
            raise DownloadError(
                "Failed to write RDB file",
                url=url,
                path=str(self.rdb_path),
                original_error=e,
            ) from e

        log.info("RDB downloaded", path=str(self.rdb_path), size=len(data))
        return self.rdb_path

    def load_rdb(self) -> RdbDatabase | None:
        """Load the cached RDB file into memory.

        Returns None when no file exists. An unreadable file is deleted so
        the next download starts clean.
        """
        if not self.rdb_exists():
            log.info("No RDB file on disk", path=str(self.rdb_path))
            self._database = None
            return None

        try:
            self._database = load(self.rdb_path, filesystem=self.filesystem)
        except RdbLoadError as e:
            log.warning("Discarding unreadable RDB file", path=str(self.rdb_path), error=str(e.original_error))
            try:
                self.filesystem.delete_file(self.rdb_path)
            except OSError:
                log.warning("Failed to delete unreadable RDB file", path=str(self.rdb_path))
            self._database = None
            return None

        log.info("RDB loaded", path=str(self.rdb_path), games=self._database.count())
        return self._database

    @property
    def is_loaded(self) -> bool:
        return self._database is not None

    @property
    def database(self) -> RdbDatabase | None:
        return self._database

    def lookup_by_checksum(self, crc32: int) -> GameRecord | None:
        """Look up a game by CRC32; None if not found or nothing is loaded."""
        if self._database is None:
            return None
        return self._database.find_by_checksum(crc32)

    def hash_for_checksum(self, crc32: int) -> str:
        if self._database is None:
            return ""
        return self._database.hash_for_checksum(crc32)

    def artwork_path(self, crc_hex: str) -> Path:
        return self.config.artwork_directory / crc_hex / ARTWORK_FILENAME

    def artwork_url(self, artwork_type: str, game_name: str) -> str:
        return (
            f"{self.config.thumbnail_base_url}/{quote(self.config.thumbnail_repo)}"
            f"/raw/refs/heads/master/{artwork_type}/{quote(game_name, safe='')}.png"
        )

    async def download_artwork(self, crc_hex: str, game_name: str) -> bool:
        """Download box art for a game, falling back through artwork types.

        A 404 moves on to the next artwork type. Any other failure is
        recorded with the error service and ends the attempt for this game.

        Args:
            crc_hex: CRC32 of the game as hex text, used as the artwork folder
            game_name: Full No-Intro name used upstream as the file name

        Returns:
            True if artwork is present on disk afterwards
        """
        if not game_name:
            return False

        path = self.artwork_path(crc_hex)
        if path.exists():
            return True

        for artwork_type in ARTWORK_TYPES:
            url = self.artwork_url(artwork_type, game_name)
            try:
                data = await self.http_client.get_bytes(url)
            except httpx.HTTPStatusError as e:
                if e.response.status_code != 404:
                    self.error_service.handle_error(
                        e, operation="download_artwork", component="metadata_manager", context={"url": url}
                    )
                    return False
                log.debug("Artwork not available", url=url, artwork_type=artwork_type)
                continue
            except httpx.HTTPError as e:
                self.error_service.handle_error(
                    e, operation="download_artwork", component="metadata_manager", context={"url": url}
                )
                return False

            try:
                self.filesystem.write_bytes_atomic(data, path)
            except OSError as e:
                self.error_service.handle_error(
                    e, operation="download_artwork", component="metadata_manager", context={"path": str(path)}
                )
                return False

            log.info("Artwork downloaded", game=game_name, artwork_type=artwork_type)
            return True

        log.info("No artwork found", game=game_name)
        return False
