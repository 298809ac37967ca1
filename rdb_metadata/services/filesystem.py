"""File system service for metadata and artwork files."""

from pathlib import Path

import structlog

log = structlog.stdlib.get_logger()


class FileSystemService:
    """Service for file operations with logging and atomic writes."""

    def ensure_directory(self, path: Path) -> None:
        """Ensure that a directory exists, creating it if necessary.

        Raises:
            OSError: If the path exists as a file or cannot be created
        """
        try:
            if path.exists():
                if not path.is_dir():
                    log.error("Path exists but is not a directory", path=str(path))
                    raise OSError(f"Path exists but is not a directory: {path}")
                return

            path.mkdir(parents=True, exist_ok=True)
            log.debug("Directory created", path=str(path))

        except OSError as e:
            log.error("Failed to create directory", path=str(path), error=str(e))
            raise

    def read_bytes(self, path: Path) -> bytes:
        """Read a whole file into memory.

        Raises:
            OSError: If the file cannot be read
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            log.error("Failed to read file", path=str(path), error=str(e))
            raise
        log.debug("File read", path=str(path), size=len(data))
        return data

    def write_bytes_atomic(self, data: bytes, path: Path) -> None:
        """Write bytes to ``path`` through a temporary sibling file.

        The destination is replaced only after the full payload is on disk,
        so readers never observe a partially written file.

        Raises:
            OSError: If the file cannot be written
        """
        self.ensure_directory(path.parent)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            temp_path.write_bytes(data)
            temp_path.replace(path)
        except OSError as e:
            log.error("Failed to write file", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise

        log.info("File written", path=str(path), size=len(data))

    def delete_file(self, path: Path) -> bool:
        """Delete a file if it exists.

        Returns:
            True if a file was removed, False if there was nothing to remove
        """
        try:
            if not path.is_file():
                return False
            path.unlink()
        except OSError as e:
            log.error("Failed to delete file", path=str(path), error=str(e))
            raise

        log.info("File deleted", path=str(path))
        return True
