"""Shared enumerations, errors and catalog metadata structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

NAME_FIELD_SIZE = 64
"""Bytes reserved for a serialized name, including the terminating NUL."""


class _NamedIntEnum(IntEnum):
    """Integer enumeration whose string form is the member name."""

    def __str__(self) -> str:
        return self.name


class Status(_NamedIntEnum):
    """Outcome codes for storage operations."""

    OK = 0
    ERROR = 1
    NOT_FOUND = 2
    INVALID_PARAMETER = 3
    IO_ERROR = 4
    DISK_FULL = 5
    BUFFER_FULL = 6
    PAGE_PINNED = 7
    INVALID_BLOCK_ID = 8
    INVALID_PAGE_TYPE = 9
    OUT_OF_MEMORY = 10
    DUPLICATE_ENTRY = 11


class PageType(_NamedIntEnum):
    """Kinds of logical page kept on disk."""

    INVALID_PAGE = 0
    DISK_METADATA_PAGE = 1
    CATALOG_PAGE = 2
    DATA_PAGE = 3
    INDEX_PAGE = 4


class BlockStatus(_NamedIntEnum):
    """Occupancy state of a physical block."""

    EMPTY = 0
    INCOMPLETE = 1
    FULL = 2


class ColumnType(_NamedIntEnum):
    """Data types a table column may hold."""

    INT = 0
    CHAR = 1
    VARCHAR = 2


class StorageError(Exception):
    """Raised when a storage operation fails; carries the failing status."""

    def __init__(self, status: Status, message: str) -> None:
        super().__init__(message)
        self.status = Status(status)
        self.message = message

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


class NotFoundError(StorageError):
    """A requested slot, record or entry does not exist."""


class InvalidPageTypeError(StorageError):
    """A page is not of a type the operation accepts."""


class PageFullError(StorageError):
    """A page has too little free space for the requested data."""


class PageUnavailableError(StorageError):
    """A page could not be obtained from the buffer pool."""


def _fit_name(name: str) -> str:
    """Trim a name so its UTF-8 form fits a fixed name field with a NUL."""
    encoded = name.encode("utf-8")
    limit = NAME_FIELD_SIZE - 1
    if len(encoded) <= limit:
        return name
    return encoded[:limit].decode("utf-8", errors="ignore")


@dataclass
class ColumnMetadata:
    """Description of one column in a table schema.

    ``size`` is the fixed length for CHAR, the integer width for INT and the
    maximum length for VARCHAR.
    """

    name: str = ""
    type: ColumnType = ColumnType.INT
    size: int = 0

    def __post_init__(self) -> None:
        self.name = _fit_name(self.name)
        self.type = ColumnType(self.type)


@dataclass
class TableMetadata:
    """Catalog entry describing a table and the pages that hold its data."""

    table_id: int = 0
    table_name: str = ""
    is_fixed_length_record: bool = True
    data_page_ids: list[int] = field(default_factory=list)
    num_records: int = 0
    fixed_record_size: int = 0

    def __post_init__(self) -> None:
        self.table_name = _fit_name(self.table_name)