# pagestore

This package provides building blocks for a small page-based storage engine.

- **Slotted data pages.** `pagestore.record_manager.RecordManager` stores
  variable-length records in fixed-size pages. Each page starts with a
  `BlockHeader`. A slot directory of `SlotDirectoryEntry` items follows the
  header and grows toward the end of the page. Record bytes are stored from
  the end of the page back toward the start.
- **Buffer replacement policies.** `pagestore.replacement` provides
  `LRUReplacementPolicy` and `ClockReplacementPolicy`. Both implement the
  abstract `ReplacementPolicy` interface.
- **Shared types.** `pagestore.common` contains the following:
  - the enumerations `Status`, `PageType`, `BlockStatus` and `ColumnType`;
  - the schema dataclasses `ColumnMetadata` and `TableMetadata`;
  - the error hierarchy, which is rooted at `StorageError`.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Record pages

`RecordManager` works on top of any object that satisfies the `PagePool`
protocol. Such an object must provide the following:

- A `block_size` attribute holding the page size in bytes.
- A `fetch_page(page_id)` method. It pins the page and returns the page's
  bytes as a mutable `bytearray`. It returns `None` when the page is not
  available.
- An `unpin_page(page_id, is_dirty)` method. It releases one pin on the page.

Every operation pins the page it works on and unpins it before it returns,
including when it raises. A page that was changed is unpinned as dirty.

```python
from pagestore.record_manager import RecordManager

class MemoryPool:
    block_size = 4096

    def __init__(self):
        self.pages = {}

    def fetch_page(self, page_id):
        return self.pages.setdefault(page_id, bytearray(self.block_size))

    def unpin_page(self, page_id, is_dirty):
        pass

records = RecordManager(MemoryPool())
records.init_data_page(1)

slot = records.insert_record(1, b"42#alice#admin")
print(records.get_record(1, slot))      # b'42#alice#admin'

slot = records.update_record(1, slot, b"42#bob")
records.delete_record(1, slot)
print(records.num_records(1))           # 0
print(records.free_space(1))
```

### Operations

- `insert_record` reuses the first free slot. If there is none, it appends a
  new slot.
- `update_record` returns the slot that now holds the record:
  - If the new data is no longer than the old record, the data is overwritten
    in place. The bytes left over are zeroed, and the slot stays the same.
  - If the new data is longer, the old slot is freed and the data is inserted
    again in the same page.
- `delete_record` marks the slot as free. Space is not compacted.
- `free_space` returns the number of bytes between the end of the slot
  directory and the record area.

### Lower-level helpers

The following methods give access to the raw page layout:

- `read_block_header` and `write_block_header`
- `read_slot_entry` and `write_slot_entry`
- `slot_directory_start_offset`

`BlockHeader` and `SlotDirectoryEntry` each have a `pack()` method and an
`unpack()` class method. These convert to and from the little-endian form
used on the page.

### Errors

Failures raise subclasses of `pagestore.common.StorageError`. The error's
`status` attribute holds the matching `Status` value.

| Error | Status | Raised when |
| --- | --- | --- |
| `NotFoundError` | `NOT_FOUND` | The slot is out of range or empty. |
| `InvalidPageTypeError` | `INVALID_PAGE_TYPE` | The page is neither a `DATA_PAGE` nor a `CATALOG_PAGE`. |
| `PageFullError` | `BUFFER_FULL` | The page lacks room for the record plus one slot entry. |
| `PageUnavailableError` | `ERROR` | `fetch_page` returned `None`. |

## Replacement policies

```python
from pagestore.replacement import ClockReplacementPolicy, LRUReplacementPolicy

lru = LRUReplacementPolicy()
for frame in (0, 1, 2):
    lru.add_frame(frame)
lru.access(0)
print(lru.evict())    # 1, the least recently used frame

clock = ClockReplacementPolicy()
for frame in (0, 1, 2):
    clock.add_frame(frame)
clock.pin(0)
print(clock.evict())  # 1, because pinned frames are skipped
```

`evict()` suggests a victim frame and returns `None` when no frame can be
evicted. `len()` of a policy gives the number of frames it tracks.

The two policies treat pinning and eviction differently:

- **LRU.** A pinned frame is dropped from the ordering. `unpin` and `access`
  make the frame the most recently used. `evict` does not remove the frame it
  suggests.
- **CLOCK.** The hand sweeps once over the tracked frames. For each unpinned
  frame it meets, it clears a set reference bit, or it returns the frame if
  the bit is already clear.

## What this package does not include

This package has no disk manager and no buffer pool implementation. You
supply the `PagePool`. It also has no table catalog, index or query
processor, and no command-line interface.

`ColumnMetadata` and `TableMetadata` are plain schema records. Nothing in the
package stores them.

## Running the tests

```
pytest
```