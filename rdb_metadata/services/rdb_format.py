"""Field-level decoding of the RDB binary format.

RDB files are a 16-byte header followed by a MessagePack-like stream of
tagged fields. Only the subset of tags emitted by libretro-database is
understood here; this is not a general MessagePack decoder.

Known deviations from MessagePack, kept for compatibility with existing
database files:
- bin8/bin16/bin32 all carry a single length byte
- str8/str16/str32 carry 1/2/3 length bytes
- map16/map32 entry counts are skipped, never used to bound a record
"""

from dataclasses import dataclass
from enum import Enum

from .errors import RdbDecodeError

HEADER_SIZE = 0x10

# Tag bytes
MPF_FIXMAP = 0x80
MPF_FIXARRAY = 0x90
MPF_FIXSTR = 0xA0
MPF_NIL = 0xC0
MPF_BIN8 = 0xC4
MPF_BIN16 = 0xC5
MPF_BIN32 = 0xC6
MPF_UINT8 = 0xCC
MPF_UINT16 = 0xCD
MPF_UINT32 = 0xCE
MPF_UINT64 = 0xCF
MPF_STR8 = 0xD9
MPF_STR16 = 0xDA
MPF_STR32 = 0xDB
MPF_MAP16 = 0xDE
MPF_MAP32 = 0xDF


class TagKind(Enum):
    """Classification of a field tag byte."""
    FIXINT = "fixint"
    FIXMAP = "fixmap"
    FIXARRAY = "fixarray"
    FIXSTR = "fixstr"
    NIL = "nil"
    BIN = "bin"
    UINT = "uint"
    STR = "str"
    MAP = "map"
    UNSUPPORTED = "unsupported"

    @property
    def starts_record(self) -> bool:
        return self in (TagKind.FIXMAP, TagKind.MAP)

    @property
    def carries_value(self) -> bool:
        return self in (TagKind.FIXSTR, TagKind.BIN, TagKind.UINT, TagKind.STR)


@dataclass(frozen=True)
class DecodedField:
    """A single decoded field and the cursor position following it."""
    kind: TagKind
    tag: int
    offset: int
    next_offset: int
    value: bytes = b""


def classify_tag(tag: int) -> TagKind:
    """Map a tag byte to its TagKind."""
    if tag < MPF_FIXMAP:
        return TagKind.FIXINT
    if tag < MPF_FIXARRAY:
        return TagKind.FIXMAP
    if tag < MPF_FIXSTR:
        return TagKind.FIXARRAY
    if tag < MPF_NIL:
        return TagKind.FIXSTR
    if tag == MPF_NIL:
        return TagKind.NIL
    if MPF_BIN8 <= tag <= MPF_BIN32:
        return TagKind.BIN
    if MPF_UINT8 <= tag <= MPF_UINT64:
        return TagKind.UINT
    if MPF_STR8 <= tag <= MPF_STR32:
        return TagKind.STR
    if tag in (MPF_MAP16, MPF_MAP32):
        return TagKind.MAP
    return TagKind.UNSUPPORTED


def uint_width(tag: int) -> int:
    """Payload width in bytes for a uint tag: 1, 2, 4 or 8."""
    return (1 << (tag - 0xC9)) // 8


def str_length_width(tag: int) -> int:
    """Width of the length prefix for a str tag: 1, 2 or 3."""
    return tag - MPF_STR8 + 1


def map_count_width(tag: int) -> int:
    return 4 if tag == MPF_MAP32 else 2


def decode_field(data: bytes, pos: int) -> DecodedField | None:
    """Decode the field starting at ``pos``.

    Returns None when the field (its length prefix or its payload) would
    extend past the end of ``data``; callers treat that as the end of the
    stream. Raises RdbDecodeError for tags the cursor cannot advance past
    (fixint and unsupported tags).
    """
    end = len(data)
    if pos >= end:
        return None

    tag = data[pos]
    kind = classify_tag(tag)
    cursor = pos + 1

    if kind in (TagKind.NIL, TagKind.FIXMAP, TagKind.FIXARRAY):
        return DecodedField(kind, tag, pos, cursor)

    if kind == TagKind.MAP:
        width = map_count_width(tag)
        if cursor + width > end:
            return None
        return DecodedField(kind, tag, pos, cursor + width)

    if kind == TagKind.FIXSTR:
        length = tag - MPF_FIXSTR
    elif kind == TagKind.UINT:
        length = uint_width(tag)
    elif kind == TagKind.BIN:
        if cursor >= end:
            return None
        length = data[cursor]
        cursor += 1
    elif kind == TagKind.STR:
        width = str_length_width(tag)
        if cursor + width > end:
            return None
        length = int.from_bytes(data[cursor:cursor + width], "big")
        cursor += width
    else:
        raise RdbDecodeError(offset=pos, tag=tag)

    if cursor + length > end:
        return None
    return DecodedField(kind, tag, pos, cursor + length, bytes(data[cursor:cursor + length]))
