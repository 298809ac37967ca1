"""Service layer: RDB decoding, metadata management and integrations."""

from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    DownloadError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    FileSystemError,
    NetworkError,
    RdbDecodeError,
    RdbLoadError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
)
from .filesystem import FileSystemService
from .http_client import HttpClientService
from .metadata_manager import MetadataManager
from .rdb_format import DecodedField, TagKind, classify_tag, decode_field
from .rdb_parser import RdbDatabase, load, parse

__all__ = [
    "AppError",
    "ConfigurationService",
    "DecodedField",
    "DownloadError",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "FileSystemError",
    "FileSystemService",
    "HttpClientService",
    "MetadataManager",
    "NetworkError",
    "RdbDatabase",
    "RdbDecodeError",
    "RdbLoadError",
    "TagKind",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "classify_tag",
    "decode_field",
    "get_error_service",
    "load",
    "parse",
]
