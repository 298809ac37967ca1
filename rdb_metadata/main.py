"""Command-line entry point for the RDB metadata tools.

Provides:
- `info`: summarize an RDB file
- `lookup`: find a game by CRC32 or MD5
- `download`: fetch the configured system database
- `artwork`: fetch box art for games in the downloaded database
- `config`: write the configuration file
"""

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path

import structlog

from . import __version__
from .models import AppConfig, GameRecord
from .services.config import VALID_LOG_LEVELS, ConfigurationService
from .services.errors import ErrorHandlingService
from .services.http_client import HttpClientService
from .services.logging import setup_logging
from .services.metadata_manager import MetadataManager
from .services.rdb_parser import RdbDatabase, load

log = structlog.stdlib.get_logger()


class ApplicationContext:
    """Lazily constructed services shared by the commands."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path: Path | None = config_path
        self._config_service: ConfigurationService | None = None
        self._config: AppConfig | None = None
        self._http_client: HttpClientService | None = None
        self.error_service = ErrorHandlingService()

    @property
    def config_service(self) -> ConfigurationService:
        if self._config_service is None:
            self._config_service = ConfigurationService(config_path=self._config_path)
        return self._config_service

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = self.config_service.load_config()
        return self._config

    @property
    def http_client(self) -> HttpClientService:
        if self._http_client is None:
            self._http_client = HttpClientService(
                timeout=self.config.http_timeout,
                max_retries=self.config.max_retries,
            )
        return self._http_client

    def metadata_manager(self) -> MetadataManager:
        return MetadataManager(
            config=self.config,
            http_client=self.http_client,
            error_service=self.error_service,
        )

    async def cleanup(self) -> None:
        if self._http_client is not None:
            await self._http_client.close()
            self._http_client = None


def parse_checksum(text: str) -> int:
    """Parse a CRC32 given as hex, with or without a 0x prefix."""
    value = int(text, 16)
    if not 0 <= value <= 0xFFFFFFFF:
        raise argparse.ArgumentTypeError(f"CRC32 out of range: {text}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rdb-metadata",
        description="Inspect and query libretro RDB game databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rdb-metadata info game.rdb --limit 10
  rdb-metadata lookup game.rdb --crc 0x12345678
  rdb-metadata download --config ./config.json
  rdb-metadata artwork --crc 0x12345678
  rdb-metadata config --rdb-name "Sega - Game Gear" --thumbnail-repo Sega_-_Game_Gear
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.config/rdb-metadata/config.json)",
    )
    parser.add_argument(
        "--log-level",
        choices=VALID_LOG_LEVELS,
        default="WARNING",
        help="Set the logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: console only)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    info = subparsers.add_parser("info", help="Summarize an RDB file")
    info.add_argument("path", type=Path, help="RDB file to read")
    info.add_argument("--limit", type=int, default=5, help="Number of entries to display")

    lookup = subparsers.add_parser("lookup", help="Find a game by checksum or hash")
    lookup.add_argument("path", type=Path, help="RDB file to read")
    key = lookup.add_mutually_exclusive_group(required=True)
    key.add_argument("--crc", type=parse_checksum, help="CRC32 as hex")
    key.add_argument("--md5", type=str.lower, help="MD5 as hex")

    subparsers.add_parser("download", help="Download the configured system database")

    artwork = subparsers.add_parser("artwork", help="Download box art for games in the downloaded database")
    artwork.add_argument("--crc", type=parse_checksum, action="append", help="Only this CRC32 (repeatable)")
    artwork.add_argument("--limit", type=int, default=None, help="Maximum number of games to process")

    config = subparsers.add_parser("config", help="Write the configuration file")
    config.add_argument("--metadata-dir", type=Path, help="Directory for the downloaded database")
    config.add_argument("--artwork-dir", type=Path, help="Directory for downloaded artwork")
    config.add_argument("--rdb-name", help="libretro-database system name")
    config.add_argument("--thumbnail-repo", help="libretro-thumbnails repository name")

    return parser


def format_record(record: GameRecord) -> str:
    """Render a record as an indented multi-line block."""
    lines = [
        record.display_name or "Unnamed",
        f"    Name: {record.name}",
        f"    Region: {record.region or '-'}    Size: {record.size or '-'}",
        f"    CRC32: {record.crc32_hex or '-'}    MD5: {record.md5 or '-'}",
        f"    Serial: {record.serial or '-'}",
        f"    Dev: {record.developer or '-'}    Pub: {record.publisher or '-'}"
        f"    Release: {record.release_date or '-'}",
    ]
    if record.genre:
        lines.append(f"    Genre: {record.genre}")
    return "\n".join(lines)


def run_info(database: RdbDatabase, path: Path, limit: int) -> int:
    print(f"Loaded {database.count()} entries from {path}")
    for index, record in enumerate(database.records[:max(limit, 0)], 1):
        print(f"{index}. {format_record(record)}")
    return 0


def run_lookup(database: RdbDatabase, crc: int | None, md5: str | None) -> int:
    if crc is not None:
        record = database.find_by_checksum(crc)
    else:
        record = database.find_by_hash(md5 or "")

    if record is None:
        print("No matching game found", file=sys.stderr)
        return 1

    print(format_record(record))
    return 0


async def run_download(context: ApplicationContext) -> int:
    manager = context.metadata_manager()
    try:
        path = await manager.download_rdb()
    finally:
        await context.cleanup()

    database = manager.load_rdb()
    count = database.count() if database is not None else 0
    print(f"Downloaded {context.config.rdb_name} to {path} ({count} entries)")
    return 0


async def run_artwork(context: ApplicationContext, crcs: list[int] | None, limit: int | None) -> int:
    manager = context.metadata_manager()
    try:
        database = manager.load_rdb()
        if database is None:
            print("No database downloaded yet, run 'rdb-metadata download' first", file=sys.stderr)
            return 1

        if crcs:
            records = []
            for crc in crcs:
                record = database.find_by_checksum(crc)
                if record is None:
                    print(f"No matching game found for {crc:08X}", file=sys.stderr)
                else:
                    records.append(record)
        else:
            records = [record for record in database if record.crc32]
        if limit is not None:
            records = records[:max(limit, 0)]

        fetched = 0
        for record in records:
            if await manager.download_artwork(record.crc32_hex, record.name):
                fetched += 1
    finally:
        await context.cleanup()

    print(f"Artwork available for {fetched} of {len(records)} games")
    failures = context.error_service.get_error_count_by_category()
    for category, count in failures.items():
        print(f"    {category.value} errors: {count}", file=sys.stderr)
    return 1 if failures else 0


def run_config(context: ApplicationContext, args: argparse.Namespace) -> int:
    """Merge the given options into the current configuration and save it."""
    changes: dict[str, object] = {}
    if args.metadata_dir is not None:
        changes["metadata_directory"] = args.metadata_dir.expanduser().resolve()
    if args.artwork_dir is not None:
        changes["artwork_directory"] = args.artwork_dir.expanduser().resolve()
    if args.rdb_name is not None:
        changes["rdb_name"] = args.rdb_name
    if args.thumbnail_repo is not None:
        changes["thumbnail_repo"] = args.thumbnail_repo

    config = dataclasses.replace(context.config, **changes)
    context.config_service.save_config(config)
    print(f"Saved configuration to {context.config_service.config_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit code."""
    args = build_parser().parse_args(argv)

    setup_logging(log_level=args.log_level, log_dir=args.log_dir)
    log.debug("Starting rdb-metadata", version=__version__, command=args.command)

    context = ApplicationContext(config_path=args.config)

    try:
        if args.command == "download":
            exit_code = asyncio.run(run_download(context))
        elif args.command == "artwork":
            exit_code = asyncio.run(run_artwork(context, args.crc, args.limit))
        elif args.command == "config":
            exit_code = run_config(context, args)
        else:
            database = load(args.path)
            if args.command == "info":
                exit_code = run_info(database, args.path, args.limit)
            else:
                exit_code = run_lookup(database, args.crc, args.md5)

    except KeyboardInterrupt:
        log.info("Interrupted by user")
        exit_code = 130

    except Exception as e:
        friendly = context.error_service.handle_error(e, operation=args.command, component="cli")
        print(context.error_service.create_user_message(friendly), file=sys.stderr)
        exit_code = 1

    log.debug("Exiting", exit_code=exit_code)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
