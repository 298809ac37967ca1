"""Tests for the metadata manager: RDB download, caching and artwork fetching."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from rdb_metadata.models import AppConfig
from rdb_metadata.services.errors import DownloadError, ErrorCategory, ErrorHandlingService, get_error_service
from rdb_metadata.services.filesystem import FileSystemService
from rdb_metadata.services.http_client import HttpClientService
from rdb_metadata.services.metadata_manager import ARTWORK_TYPES, MetadataManager

from rdb_builders import database, record


def make_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        metadata_directory=tmp_path / "metadata",
        artwork_directory=tmp_path / "artwork",
        rdb_name="Sega - Master System - Mark III",
        thumbnail_repo="Sega_-_Master_System_-_Mark_III",
    )


def status_error(status_code: int, url: str) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


SAMPLE_RDB = database(
    record(name="Sonic the Hedgehog (USA, Europe)", crc=b"\xb5\x19\xe8\x33", md5=bytes(range(16))),
    record(name="Alex Kidd in Miracle World (USA, Europe)", crc=b"\xae\xd9\xaa\xc4"),
)


@pytest.fixture
def http_client() -> AsyncMock:
    return AsyncMock(spec=HttpClientService)


@pytest.fixture
def manager(tmp_path: Path, http_client: AsyncMock) -> MetadataManager:
    return MetadataManager(config=make_config(tmp_path), http_client=http_client, error_service=ErrorHandlingService())


class TestUrls:
    def test_rdb_url_escapes_system_name(self, manager: MetadataManager) -> None:
        assert manager.rdb_url == (
            "https://github.com/libretro/libretro-database/raw/refs/heads/master/rdb/"
            "Sega%20-%20Master%20System%20-%20Mark%20III.rdb"
        )

    def test_artwork_url(self, manager: MetadataManager) -> None:
        url = manager.artwork_url("Named_Boxarts", "Sonic the Hedgehog (USA, Europe)")
        assert url == (
            "https://github.com/libretro-thumbnails/Sega_-_Master_System_-_Mark_III"
            "/raw/refs/heads/master/Named_Boxarts/Sonic%20the%20Hedgehog%20%28USA%2C%20Europe%29.png"
        )

    def test_paths(self, manager: MetadataManager, tmp_path: Path) -> None:
        assert manager.rdb_path == tmp_path / "metadata" / "game.rdb"
        assert manager.artwork_path("B519E833") == tmp_path / "artwork" / "B519E833" / "boxart.png"


class TestDownloadRdb:
    @pytest.mark.asyncio
    async def test_download_writes_file(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.return_value = SAMPLE_RDB

        path = await manager.download_rdb()

        http_client.get_bytes.assert_awaited_once_with(manager.rdb_url)
        assert path == manager.rdb_path
        assert path.read_bytes() == SAMPLE_RDB
        assert manager.rdb_exists()

    @pytest.mark.asyncio
    async def test_http_status_failure(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.side_effect = status_error(404, manager.rdb_url)

        with pytest.raises(DownloadError) as exc_info:
            await manager.download_rdb()

        assert "404" in exc_info.value.message
        assert exc_info.value.url == manager.rdb_url
        assert not manager.rdb_exists()

    @pytest.mark.asyncio
    async def test_transport_failure(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(DownloadError, match="Failed to download RDB") as exc_info:
            await manager.download_rdb()

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_file(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        manager.rdb_path.parent.mkdir(parents=True)
        manager.rdb_path.write_bytes(SAMPLE_RDB)
        http_client.get_bytes.return_value = b"new contents"

        with patch.object(Path, "replace", side_effect=OSError("No space left on device")):
            with pytest.raises(DownloadError, match="Failed to write RDB file") as exc_info:
                await manager.download_rdb()

        assert exc_info.value.path == str(manager.rdb_path)
        assert manager.rdb_path.read_bytes() == SAMPLE_RDB


class TestLoadRdb:
    def test_missing_file(self, manager: MetadataManager) -> None:
        assert manager.load_rdb() is None
        assert not manager.is_loaded
        assert manager.lookup_by_checksum(0xB519E833) is None
        assert manager.hash_for_checksum(0xB519E833) == ""

    def test_load_and_lookup(self, manager: MetadataManager) -> None:
        manager.rdb_path.parent.mkdir(parents=True)
        manager.rdb_path.write_bytes(SAMPLE_RDB)

        db = manager.load_rdb()

        assert db is not None
        assert db.count() == 2
        assert manager.is_loaded
        assert manager.database is db
        assert manager.lookup_by_checksum(0xAED9AAC4).display_name == "Alex Kidd in Miracle World"
        assert manager.hash_for_checksum(0xB519E833) == bytes(range(16)).hex()

    def test_unreadable_file_is_deleted(self, manager: MetadataManager) -> None:
        manager.rdb_path.parent.mkdir(parents=True)
        manager.rdb_path.write_bytes(SAMPLE_RDB)

        with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
            assert manager.load_rdb() is None

        assert not manager.is_loaded
        assert not manager.rdb_path.exists()

    def test_truncated_file_loads_partially(self, manager: MetadataManager) -> None:
        manager.rdb_path.parent.mkdir(parents=True)
        manager.rdb_path.write_bytes(SAMPLE_RDB[:-20])

        db = manager.load_rdb()

        assert db is not None
        assert db.count() == 1
        assert manager.rdb_exists()


class TestDownloadArtwork:
    @pytest.mark.asyncio
    async def test_first_type_succeeds(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.return_value = b"\x89PNG"

        assert await manager.download_artwork("B519E833", "Sonic the Hedgehog (USA, Europe)") is True

        assert manager.artwork_path("B519E833").read_bytes() == b"\x89PNG"
        http_client.get_bytes.assert_awaited_once_with(
            manager.artwork_url("Named_Boxarts", "Sonic the Hedgehog (USA, Europe)")
        )

    @pytest.mark.asyncio
    async def test_falls_back_through_types(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        name = "Zillion (Europe)"
        http_client.get_bytes.side_effect = [
            status_error(404, manager.artwork_url("Named_Boxarts", name)),
            status_error(404, manager.artwork_url("Named_Titles", name)),
            b"\x89PNG snap",
        ]

        assert await manager.download_artwork("60C19645", name) is True

        called = [call.args[0] for call in http_client.get_bytes.await_args_list]
        assert called == [manager.artwork_url(t, name) for t in ARTWORK_TYPES]
        assert manager.artwork_path("60C19645").read_bytes() == b"\x89PNG snap"
        assert manager.error_service.get_error_count_by_category() == {}

    @pytest.mark.asyncio
    async def test_no_artwork_anywhere(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.side_effect = [status_error(404, "https://example.com/x.png")] * len(ARTWORK_TYPES)

        assert await manager.download_artwork("00000001", "Unknown Game") is False
        assert http_client.get_bytes.await_count == len(ARTWORK_TYPES)
        assert not manager.artwork_path("00000001").exists()
        assert manager.error_service.get_error_count_by_category() == {}

    @pytest.mark.asyncio
    async def test_connection_failure_is_recorded(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        http_client.get_bytes.side_effect = httpx.ConnectError("offline")

        with patch("rdb_metadata.services.errors.log") as mock_logger:
            assert await manager.download_artwork("00000001", "Unknown Game") is False

        http_client.get_bytes.assert_awaited_once()
        assert manager.error_service.get_error_count_by_category() == {ErrorCategory.NETWORK: 1}
        kwargs = mock_logger.error.call_args.kwargs
        assert kwargs["operation"] == "download_artwork"
        assert kwargs["error_message"].startswith("Unable to connect to the server")
        assert kwargs["context"] == {"url": manager.artwork_url("Named_Boxarts", "Unknown Game")}

    @pytest.mark.asyncio
    async def test_server_error_is_recorded(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        url = manager.artwork_url("Named_Boxarts", "Sonic")
        http_client.get_bytes.side_effect = status_error(503, url)

        with patch("rdb_metadata.services.errors.log") as mock_logger:
            assert await manager.download_artwork("B519E833", "Sonic") is False

        http_client.get_bytes.assert_awaited_once()
        kwargs = mock_logger.error.call_args.kwargs
        assert kwargs["error_message"] == "The service is temporarily unavailable. Please try again later."
        assert "Status: 503" in kwargs["technical_details"]
        assert f"URL: {url}" in kwargs["technical_details"]

    @pytest.mark.asyncio
    async def test_existing_artwork_is_not_downloaded(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        path = manager.artwork_path("B519E833")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"cached")

        assert await manager.download_artwork("B519E833", "Sonic") is True
        http_client.get_bytes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_name(self, manager: MetadataManager, http_client: AsyncMock) -> None:
        assert await manager.download_artwork("B519E833", "") is False
        http_client.get_bytes.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_write_failure_is_recorded(self, tmp_path: Path, http_client: AsyncMock) -> None:
        filesystem = FileSystemService()
        error_service = ErrorHandlingService()
        manager = MetadataManager(
            config=make_config(tmp_path),
            http_client=http_client,
            filesystem=filesystem,
            error_service=error_service,
        )
        http_client.get_bytes.return_value = b"\x89PNG"

        with patch.object(filesystem, "write_bytes_atomic", side_effect=PermissionError("read-only file system")):
            with patch("rdb_metadata.services.errors.log") as mock_logger:
                assert await manager.download_artwork("B519E833", "Sonic") is False

        assert error_service.get_error_count_by_category() == {ErrorCategory.FILE_SYSTEM: 1}
        kwargs = mock_logger.error.call_args.kwargs
        assert kwargs["category"] == "file_system"
        assert f"Path: {manager.artwork_path('B519E833')}" in kwargs["technical_details"]

    def test_default_error_service_is_shared(self, tmp_path: Path, http_client: AsyncMock) -> None:
        manager = MetadataManager(config=make_config(tmp_path), http_client=http_client)
        assert manager.error_service is get_error_service()
