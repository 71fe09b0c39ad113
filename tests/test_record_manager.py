from collections import Counter

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pagestore.common import (
    InvalidPageTypeError,
    NotFoundError,
    PageFullError,
    PageType,
    PageUnavailableError,
    Status,
)
from pagestore.record_manager import BlockHeader, RecordManager, SlotDirectoryEntry

BLOCK_SIZE = 256


class FakePool:
    def __init__(self, block_size=BLOCK_SIZE, pages=(1, 2)):
        self.block_size = block_size
        self.pages = {pid: bytearray(block_size) for pid in pages}
        self.pins = Counter()
        self.dirty = set()

    def fetch_page(self, page_id):
        page = self.pages.get(page_id)
        if page is not None:
            self.pins[page_id] += 1
        return page

    def unpin_page(self, page_id, is_dirty):
        self.pins[page_id] -= 1
        if is_dirty:
            self.dirty.add(page_id)


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def manager(pool):
    rm = RecordManager(pool)
    rm.init_data_page(1)
    return rm


def test_block_header_round_trip():
    header = BlockHeader(7, PageType.CATALOG_PAGE, 100, 3, 40)
    packed = header.pack()
    assert len(packed) == BlockHeader.SIZE
    assert BlockHeader.unpack(packed) == header


def test_slot_entry_round_trip():
    entry = SlotDirectoryEntry(12, 34, True)
    packed = entry.pack()
    assert len(packed) == SlotDirectoryEntry.SIZE
    assert SlotDirectoryEntry.unpack(packed) == entry


def test_init_data_page_writes_header(manager, pool):
    header = manager.read_block_header(pool.pages[1])
    assert header.page_id == 1
    assert header.page_type == PageType.DATA_PAGE
    assert header.data_end_offset == BLOCK_SIZE
    assert header.num_slots == 0
    assert header.header_and_slot_directory_size == manager.slot_directory_start_offset()
    assert 1 in pool.dirty
    assert manager.free_space(1) == BLOCK_SIZE - BlockHeader.SIZE


def test_insert_and_get(manager):
    first = manager.insert_record(1, b"alpha#1")
    second = manager.insert_record(1, b"beta#2")
    assert (first, second) == (0, 1)
    assert manager.get_record(1, first) == b"alpha#1"
    assert manager.get_record(1, second) == b"beta#2"
    assert manager.num_records(1) == 2


def test_insert_consumes_record_and_slot_space(manager):
    before = manager.free_space(1)
    manager.insert_record(1, b"abcdef")
    assert manager.free_space(1) == before - 6 - SlotDirectoryEntry.SIZE


def test_record_stored_at_page_end(manager, pool):
    manager.insert_record(1, b"tail")
    assert bytes(pool.pages[1][-4:]) == b"tail"
    entry = manager.read_slot_entry(pool.pages[1], 0)
    assert entry == SlotDirectoryEntry(BLOCK_SIZE - 4, 4, True)


def test_delete_then_get_raises(manager):
    slot = manager.insert_record(1, b"gone")
    manager.delete_record(1, slot)
    with pytest.raises(NotFoundError) as info:
        manager.get_record(1, slot)
    assert info.value.status == Status.NOT_FOUND
    assert manager.num_records(1) == 0


def test_delete_twice_raises(manager):
    slot = manager.insert_record(1, b"x")
    manager.delete_record(1, slot)
    with pytest.raises(NotFoundError):
        manager.delete_record(1, slot)


def test_freed_slot_is_reused(manager):
    manager.insert_record(1, b"one")
    manager.insert_record(1, b"two")
    manager.delete_record(1, 0)
    assert manager.insert_record(1, b"three") == 0
    assert manager.get_record(1, 0) == b"three"
    assert manager.get_record(1, 1) == b"two"


def test_slot_out_of_range(manager):
    manager.insert_record(1, b"only")
    with pytest.raises(NotFoundError):
        manager.get_record(1, 5)
    with pytest.raises(NotFoundError):
        manager.update_record(1, 5, b"x")


def test_update_in_place_shorter(manager, pool):
    slot = manager.insert_record(1, b"longer value")
    assert manager.update_record(1, slot, b"short") == slot
    assert manager.get_record(1, slot) == b"short"
    entry = manager.read_slot_entry(pool.pages[1], slot)
    tail = pool.pages[1][entry.offset + 5 : entry.offset + len(b"longer value")]
    assert bytes(tail) == bytes(len(tail))


def test_update_larger_relocates(manager):
    slot = manager.insert_record(1, b"ab")
    other = manager.insert_record(1, b"keep")
    new_slot = manager.update_record(1, slot, b"much longer content")
    assert manager.get_record(1, new_slot) == b"much longer content"
    assert manager.get_record(1, other) == b"keep"
    assert manager.num_records(1) == 2


def test_page_full(manager):
    with pytest.raises(PageFullError) as info:
        manager.insert_record(1, bytes(BLOCK_SIZE))
    assert info.value.status == Status.BUFFER_FULL


def test_exact_fit_then_full(manager):
    room = manager.free_space(1) - SlotDirectoryEntry.SIZE
    manager.insert_record(1, b"z" * room)
    assert manager.free_space(1) == 0
    with pytest.raises(PageFullError):
        manager.insert_record(1, b"")


def test_uninitialised_page_rejected(pool):
    manager = RecordManager(pool)
    with pytest.raises(InvalidPageTypeError) as info:
        manager.insert_record(2, b"data")
    assert info.value.status == Status.INVALID_PAGE_TYPE
    assert pool.pins[2] == 0


def test_catalog_page_accepted(pool):
    manager = RecordManager(pool)
    header = BlockHeader(
        2, PageType.CATALOG_PAGE, BLOCK_SIZE, 0, manager.slot_directory_start_offset()
    )
    manager.write_block_header(pool.pages[2], header)
    slot = manager.insert_record(2, b"schema")
    assert manager.get_record(2, slot) == b"schema"


def test_missing_page(manager):
    with pytest.raises(PageUnavailableError):
        manager.get_record(99, 0)
    with pytest.raises(PageUnavailableError):
        manager.init_data_page(99)


def test_pins_are_balanced(manager, pool):
    slot = manager.insert_record(1, b"abc")
    manager.get_record(1, slot)
    manager.update_record(1, slot, b"abcdefgh")
    manager.free_space(1)
    manager.num_records(1)
    with pytest.raises(NotFoundError):
        manager.get_record(1, 40)
    assert pool.pins[1] == 0


@settings(max_examples=50)
@given(st.lists(st.binary(min_size=0, max_size=20), min_size=1, max_size=6))
def test_inserted_records_round_trip(records):
    pool = FakePool()
    manager = RecordManager(pool)
    manager.init_data_page(1)
    slots = [manager.insert_record(1, record) for record in records]
    assert slots == list(range(len(records)))
    assert [manager.get_record(1, slot) for slot in slots] == records
    used = sum(len(r) for r in records) + len(records) * SlotDirectoryEntry.SIZE
    assert manager.free_space(1) == BLOCK_SIZE - BlockHeader.SIZE - used