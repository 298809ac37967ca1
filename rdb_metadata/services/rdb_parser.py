"""RDB record assembly, field mapping and the queryable database.

The decoder walks the field stream produced by ``decode_field`` and pairs
keys with values. Record boundaries are inferred from map-start tags only:
every fixmap/map16/map32 closes the record in progress and opens a new one.
"""

from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ..models.game import GameRecord
from .errors import RdbDecodeError, RdbLoadError
from .filesystem import FileSystemService
from .rdb_format import HEADER_SIZE, TagKind, decode_field

log = structlog.stdlib.get_logger()

TEXT_FIELDS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "genre": "genre",
    "developer": "developer",
    "publisher": "publisher",
    "franchise": "franchise",
    "esrb_rating": "esrb_rating",
    "serial": "serial",
    "rom_name": "rom_name",
}

# key -> (attribute, bit width)
NUMERIC_FIELDS: dict[str, tuple[str, int]] = {
    "size": ("size", 64),
    "releasemonth": ("release_month", 32),
    "releaseyear": ("release_year", 32),
    "crc": ("crc32", 32),
}


def be_uint(raw: bytes, bits: int) -> int:
    """Fold big-endian bytes into an unsigned int, saturating at ``bits``."""
    value = 0
    for byte in raw:
        value = (value << 8) | byte
    return min(value, (1 << bits) - 1)


def map_field(fields: dict[str, Any], key: str, raw: bytes) -> None:
    """Assign a decoded (key, value) pair onto pending record fields.

    Unknown keys are ignored so newer databases stay readable.
    """
    if key in TEXT_FIELDS:
        fields[TEXT_FIELDS[key]] = raw.decode("utf-8", errors="replace")
    elif key in NUMERIC_FIELDS:
        attr, bits = NUMERIC_FIELDS[key]
        fields[attr] = be_uint(raw, bits)
    elif key == "md5":
        fields["md5"] = raw.hex()


class AssemblerState(Enum):
    EXPECTING_KEY = "expecting_key"
    EXPECTING_VALUE = "expecting_value"


class RecordAssembler:
    """Two-state key/value machine that builds GameRecords in source order."""

    def __init__(self) -> None:
        self.records: list[GameRecord] = []
        self.state = AssemblerState.EXPECTING_KEY
        self._fields: dict[str, Any] = {}
        self._key = ""

    def start_record(self) -> None:
        """Close the record in progress and begin a blank one."""
        self.flush()
        self.state = AssemblerState.EXPECTING_KEY

    def accept(self, raw: bytes) -> None:
        """Route a decoded field to the pending key or the pending record."""
        if self.state == AssemblerState.EXPECTING_KEY:
            self._key = raw.decode("utf-8", errors="replace")
            self.state = AssemblerState.EXPECTING_VALUE
        elif self.state == AssemblerState.EXPECTING_VALUE:
            map_field(self._fields, self._key, raw)
            self.state = AssemblerState.EXPECTING_KEY
        else:
            raise AssertionError(f"Invalid assembler state: {self.state}")

    def flush(self) -> None:
        """Append the pending record if it has a name or a checksum."""
        if self._fields.get("name") or self._fields.get("crc32"):
            self.records.append(GameRecord(**self._fields))
        self._fields = {}


class RdbDatabase:
    """Read-only collection of GameRecords with checksum and hash indexes.

    When several records share a CRC32 or MD5, the index points at the last
    of them in source order.
    """

    def __init__(self, records: list[GameRecord] | tuple[GameRecord, ...] = ()) -> None:
        self._records: tuple[GameRecord, ...] = tuple(records)
        self._by_crc32: dict[int, GameRecord] = {}
        self._by_md5: dict[str, GameRecord] = {}

        for record in self._records:
            if record.crc32 != 0:
                self._by_crc32[record.crc32] = record
            if record.md5:
                self._by_md5[record.md5] = record

    @property
    def records(self) -> tuple[GameRecord, ...]:
        return self._records

    def find_by_checksum(self, crc32: int) -> GameRecord | None:
        """Look up a game by its CRC32 checksum."""
        return self._by_crc32.get(crc32)

    def find_by_hash(self, md5: str) -> GameRecord | None:
        """Look up a game by its lowercase hex MD5."""
        return self._by_md5.get(md5)

    def hash_for_checksum(self, crc32: int) -> str:
        """Return the MD5 of the game with this CRC32, or "" if unknown."""
        record = self._by_crc32.get(crc32)
        if record is None:
            return ""
        return record.md5

    def count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[GameRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return (
            f"RdbDatabase(records={len(self._records)}, "
            f"crc32_keys={len(self._by_crc32)}, md5_keys={len(self._by_md5)})"
        )


def parse_records(data: bytes, strict: bool = False) -> list[GameRecord]:
    """Decode the record list from raw RDB bytes.

    Args:
        data: Full file contents, header included
        strict: Raise RdbDecodeError on unsupported tags instead of
            stopping with the records decoded so far

    Returns:
        Records in source order
    """
    assembler = RecordAssembler()
    pos = HEADER_SIZE
    stop_reason = "end_of_buffer"

    try:
        while pos < len(data):
            field = decode_field(data, pos)
            if field is None:
                stop_reason = "truncated"
                break
            if field.kind == TagKind.NIL:
                stop_reason = "terminator"
                break

            pos = field.next_offset
            if field.kind.starts_record:
                assembler.start_record()
            elif field.kind.carries_value:
                assembler.accept(field.value)
    except RdbDecodeError as e:
        if strict:
            raise
        stop_reason = "unsupported_tag"
        log.warning(
            "Stopping RDB decode at unsupported tag",
            offset=e.offset,
            tag=f"0x{e.tag:02x}",
            records=len(assembler.records),
        )

    assembler.flush()
    log.debug(
        "RDB records decoded",
        size=len(data),
        records=len(assembler.records),
        stop_reason=stop_reason,
        end_offset=pos,
    )
    return assembler.records


def parse(data: bytes, *, strict: bool = False) -> RdbDatabase:
    """Parse RDB bytes into a database.

    Malformed or truncated input yields a partial or empty database.
    """
    database = RdbDatabase(parse_records(data, strict=strict))
    log.debug("RDB database built", database=repr(database))
    return database


def load(
    path: Path | str,
    *,
    strict: bool = False,
    filesystem: FileSystemService | None = None,
) -> RdbDatabase:
    """Read an RDB file from disk and parse it.

    Raises:
        RdbLoadError: If the file cannot be read
    """
    path = Path(path)
    filesystem = filesystem or FileSystemService()
    try:
        data = filesystem.read_bytes(path)
    except OSError as e:
        raise RdbLoadError(str(path), e) from e

    log.info("RDB file read", path=str(path), size=len(data))
    return parse(data, strict=strict)
