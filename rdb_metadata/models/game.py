"""Game record data model."""

from dataclasses import dataclass

from .. import names

MONTH_NAMES = (
    "", "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


@dataclass(frozen=True)
class GameRecord:
    """One game entry decoded from an RDB file."""
    name: str = ""  # Full No-Intro name, e.g. "Sonic the Hedgehog (USA, Europe)"
    description: str = ""
    genre: str = ""
    developer: str = ""
    publisher: str = ""
    franchise: str = ""
    esrb_rating: str = ""
    rom_name: str = ""
    serial: str = ""
    release_month: int = 0
    release_year: int = 0
    size: int = 0
    crc32: int = 0  # 0 = absent
    md5: str = ""  # Lowercase hex, empty = absent

    @property
    def display_name(self) -> str:
        """Name with region/version groups removed."""
        return names.display_name(self.name)

    @property
    def region(self) -> str:
        """Region hint ("us", "eu", "jp" or "") taken from the name."""
        return names.region_hint(self.name)

    @property
    def crc32_hex(self) -> str:
        if not self.crc32:
            return ""
        return f"{self.crc32:08X}"

    @property
    def release_date(self) -> str:
        """Release date formatted as "Month Year", "Year" or ""."""
        if self.release_year <= 0:
            return ""
        if 1 <= self.release_month <= 12:
            return f"{MONTH_NAMES[self.release_month]} {self.release_year}"
        return str(self.release_year)
