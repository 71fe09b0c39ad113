"""Slotted-page record storage on top of a buffer pool.

Each data page starts with a fixed :class:`BlockHeader`, followed by a slot
directory of :class:`SlotDirectoryEntry` items growing towards the end of the
page. Record bytes are stored from the end of the page towards the start.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import ClassVar, Protocol

from pagestore.common import (
    InvalidPageTypeError,
    NotFoundError,
    PageFullError,
    PageType,
    PageUnavailableError,
    Status,
)

logger = logging.getLogger(__name__)

_RECORD_PAGE_TYPES = frozenset({PageType.DATA_PAGE, PageType.CATALOG_PAGE})


class PagePool(Protocol):
    """The buffer pool operations the record manager relies on."""

    block_size: int

    def fetch_page(self, page_id: int) -> bytearray | None:
        """Pin a page and return its mutable bytes, or None if unavailable."""

    def unpin_page(self, page_id: int, is_dirty: bool) -> object:
        """Release one pin on a page, marking it dirty if it was changed."""


@dataclass
class BlockHeader:
    """Fixed header found at the start of every page."""

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<IB3xIII")
    SIZE: ClassVar[int] = _FORMAT.size

    page_id: int = 0
    page_type: PageType = PageType.INVALID_PAGE
    data_end_offset: int = 0
    num_slots: int = 0
    header_and_slot_directory_size: int = 0

    def pack(self) -> bytes:
        """Serialize the header to its on-page form."""
        return self._FORMAT.pack(
            self.page_id,
            int(self.page_type),
            self.data_end_offset,
            self.num_slots,
            self.header_and_slot_directory_size,
        )

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> BlockHeader:
        """Read a header from the first bytes of ``data``."""
        page_id, raw_type, end, slots, dir_size = cls._FORMAT.unpack_from(data)
        try:
            page_type = PageType(raw_type)
        except ValueError:
            page_type = PageType.INVALID_PAGE
        return cls(page_id, page_type, end, slots, dir_size)


@dataclass
class SlotDirectoryEntry:
    """One entry of the slot directory, locating a record in the page."""

    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<II?3x")
    SIZE: ClassVar[int] = _FORMAT.size

    offset: int = 0
    length: int = 0
    is_occupied: bool = False

    def pack(self) -> bytes:
        """Serialize the entry to its on-page form."""
        return self._FORMAT.pack(self.offset, self.length, self.is_occupied)

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> SlotDirectoryEntry:
        """Read an entry from the first bytes of ``data``."""
        offset, length, occupied = cls._FORMAT.unpack_from(data)
        return cls(offset, length, bool(occupied))


class _PinnedPage:
    """Holds one pin on a page for the duration of a ``with`` block."""

    def __init__(self, pool: PagePool, page_id: int, operation: str) -> None:
        self._pool = pool
        self._page_id = page_id
        self._operation = operation
        self.data = bytearray()
        self.dirty = False

    def __enter__(self) -> _PinnedPage:
        data = self._pool.fetch_page(self._page_id)
        if data is None:
            raise PageUnavailableError(
                Status.ERROR,
                f"{self._operation}: page {self._page_id} could not be fetched "
                "from the buffer pool",
            )
        self.data = data
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._pool.unpin_page(self._page_id, self.dirty)


class RecordManager:
    """Inserts, reads, updates and deletes records in slotted pages."""

    def __init__(self, buffer_manager: PagePool) -> None:
        self._pool = buffer_manager
        self._header_size = BlockHeader.SIZE

    # --- layout helpers -------------------------------------------------

    def slot_directory_start_offset(self) -> int:
        """Offset at which the slot directory begins."""
        return self._header_size

    def read_block_header(self, page_data: bytes | bytearray) -> BlockHeader:
        """Decode the header stored at the start of ``page_data``."""
        return BlockHeader.unpack(page_data)

    def write_block_header(self, page_data: bytearray, header: BlockHeader) -> None:
        """Store ``header`` at the start of ``page_data``."""
        page_data[: BlockHeader.SIZE] = header.pack()

    def _slot_offset(self, slot_id: int) -> int:
        return self.slot_directory_start_offset() + slot_id * SlotDirectoryEntry.SIZE

    def read_slot_entry(
        self, page_data: bytes | bytearray, slot_id: int
    ) -> SlotDirectoryEntry:
        """Decode slot ``slot_id`` of the directory in ``page_data``."""
        return SlotDirectoryEntry.unpack(
            memoryview(page_data)[self._slot_offset(slot_id) :]
        )

    def write_slot_entry(
        self, page_data: bytearray, slot_id: int, entry: SlotDirectoryEntry
    ) -> None:
        """Store ``entry`` as slot ``slot_id`` of the directory in ``page_data``."""
        start = self._slot_offset(slot_id)
        page_data[start : start + SlotDirectoryEntry.SIZE] = entry.pack()

    # --- internal checks ------------------------------------------------

    def _record_page_header(self, page: _PinnedPage, page_id: int, operation: str) -> BlockHeader:
        header = self.read_block_header(page.data)
        if header.page_type not in _RECORD_PAGE_TYPES:
            raise InvalidPageTypeError(
                Status.INVALID_PAGE_TYPE,
                f"{operation}: page {page_id} is not a DATA_PAGE or CATALOG_PAGE "
                f"(type {header.page_type})",
            )
        return header

    def _occupied_entry(
        self, page: _PinnedPage, header: BlockHeader, page_id: int, slot_id: int, operation: str
    ) -> SlotDirectoryEntry:
        if not 0 <= slot_id < header.num_slots:
            raise NotFoundError(
                Status.NOT_FOUND,
                f"{operation}: slot {slot_id} out of range for page {page_id}",
            )
        entry = self.read_slot_entry(page.data, slot_id)
        if not entry.is_occupied:
            raise NotFoundError(
                Status.NOT_FOUND,
                f"{operation}: slot {slot_id} in page {page_id} is empty",
            )
        return entry

    # --- record operations ----------------------------------------------

    def init_data_page(self, page_id: int) -> None:
        """Write an empty data-page header into page ``page_id``."""
        with _PinnedPage(self._pool, page_id, "init_data_page") as page:
            header = BlockHeader(
                page_id=page_id,
                page_type=PageType.DATA_PAGE,
                data_end_offset=self._pool.block_size,
                num_slots=0,
                header_and_slot_directory_size=self._header_size,
            )
            self.write_block_header(page.data, header)
            page.dirty = True
        logger.debug("data page %d initialised", page_id)

    def insert_record(self, page_id: int, data: bytes) -> int:
        """Store ``data`` in the page and return the slot it was given."""
        data = bytes(data)
        with _PinnedPage(self._pool, page_id, "insert_record") as page:
            header = self._record_page_header(page, page_id, "insert_record")
            free = header.data_end_offset - header.header_and_slot_directory_size
            required = len(data) + SlotDirectoryEntry.SIZE
            if free < required:
                raise PageFullError(
                    Status.BUFFER_FULL,
                    f"insert_record: not enough space in page {page_id} "
                    f"(free {free}, needed {required})",
                )

            slot_id = next(
                (
                    slot
                    for slot in range(header.num_slots)
                    if not self.read_slot_entry(page.data, slot).is_occupied
                ),
                None,
            )
            if slot_id is None:
                slot_id = header.num_slots
                header.num_slots += 1
                header.header_and_slot_directory_size += SlotDirectoryEntry.SIZE

            header.data_end_offset -= len(data)
            offset = header.data_end_offset
            page.data[offset : offset + len(data)] = data
            self.write_slot_entry(
                page.data, slot_id, SlotDirectoryEntry(offset, len(data), True)
            )
            self.write_block_header(page.data, header)
            page.dirty = True
        logger.debug(
            "record inserted in page %d, slot %d (%d bytes)", page_id, slot_id, len(data)
        )
        return slot_id

    def get_record(self, page_id: int, slot_id: int) -> bytes:
        """Return the bytes of the record in ``slot_id``."""
        with _PinnedPage(self._pool, page_id, "get_record") as page:
            header = self._record_page_header(page, page_id, "get_record")
            entry = self._occupied_entry(page, header, page_id, slot_id, "get_record")
            return bytes(page.data[entry.offset : entry.offset + entry.length])

    def update_record(self, page_id: int, slot_id: int, data: bytes) -> int:
        """Replace the record in ``slot_id`` and return the slot now holding it.

        A record no longer than the old one is overwritten in place; a longer
        one frees the old slot and is inserted again in the same page.
        """
        data = bytes(data)
        with _PinnedPage(self._pool, page_id, "update_record") as page:
            header = self._record_page_header(page, page_id, "update_record")
            entry = self._occupied_entry(page, header, page_id, slot_id, "update_record")
            if len(data) <= entry.length:
                start = entry.offset
                page.data[start : start + len(data)] = data
                page.data[start + len(data) : start + entry.length] = bytes(
                    entry.length - len(data)
                )
                entry.length = len(data)
                self.write_slot_entry(page.data, slot_id, entry)
                page.dirty = True
                logger.debug("record overwritten in page %d, slot %d", page_id, slot_id)
                return slot_id
            entry.is_occupied = False
            self.write_slot_entry(page.data, slot_id, entry)
            page.dirty = True

        new_slot = self.insert_record(page_id, data)
        logger.debug(
            "record in page %d, slot %d relocated to slot %d", page_id, slot_id, new_slot
        )
        return new_slot

    def delete_record(self, page_id: int, slot_id: int) -> None:
        """Mark the record in ``slot_id`` as deleted."""
        with _PinnedPage(self._pool, page_id, "delete_record") as page:
            header = self._record_page_header(page, page_id, "delete_record")
            entry = self._occupied_entry(page, header, page_id, slot_id, "delete_record")
            entry.is_occupied = False
            self.write_slot_entry(page.data, slot_id, entry)
            page.dirty = True
        logger.debug("record deleted from page %d, slot %d", page_id, slot_id)

    def num_records(self, page_id: int) -> int:
        """Count the occupied slots of a page."""
        with _PinnedPage(self._pool, page_id, "num_records") as page:
            header = self._record_page_header(page, page_id, "num_records")
            return sum(
                self.read_slot_entry(page.data, slot).is_occupied
                for slot in range(header.num_slots)
            )

    def free_space(self, page_id: int) -> int:
        """Bytes between the end of the slot directory and the record area."""
        with _PinnedPage(self._pool, page_id, "free_space") as page:
            header = self._record_page_header(page, page_id, "free_space")
            return header.data_end_offset - header.header_and_slot_directory_size