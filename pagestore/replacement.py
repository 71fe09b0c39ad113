"""Page replacement policies for the buffer pool."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass


class ReplacementPolicy(ABC):
    """Chooses which buffer frame to evict when the pool is full.

    ``pin`` marks a frame as not evictable, ``unpin`` and ``access`` record use,
    ``add_frame`` and ``remove_frame`` start and stop tracking a frame, and
    ``evict`` suggests a victim or returns None when there is none.
    """

    @abstractmethod
    def pin(self, frame_id: int) -> None: ...

    @abstractmethod
    def unpin(self, frame_id: int) -> None: ...

    @abstractmethod
    def access(self, frame_id: int) -> None: ...

    @abstractmethod
    def evict(self) -> int | None: ...

    @abstractmethod
    def add_frame(self, frame_id: int) -> None: ...

    @abstractmethod
    def remove_frame(self, frame_id: int) -> None: ...


class LRUReplacementPolicy(ReplacementPolicy):
    """Least-recently-used policy: the oldest unpinned frame is the victim."""

    def __init__(self) -> None:
        self._order: OrderedDict[int, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._order)

    def _discard(self, frame_id: int) -> None:
        self._order.pop(frame_id, None)

    def pin(self, frame_id: int) -> None:
        self._discard(frame_id)

    def unpin(self, frame_id: int) -> None:
        self.access(frame_id)

    def access(self, frame_id: int) -> None:
        self._order[frame_id] = None
        self._order.move_to_end(frame_id)

    def evict(self) -> int | None:
        """Suggest the least recently used frame without removing it."""
        return next(iter(self._order), None)

    def add_frame(self, frame_id: int) -> None:
        self.access(frame_id)

    def remove_frame(self, frame_id: int) -> None:
        self._discard(frame_id)


@dataclass
class _ClockFrame:
    frame_id: int
    reference_bit: bool = False
    is_pinned: bool = False


class ClockReplacementPolicy(ReplacementPolicy):
    """Second-chance policy driven by a clock hand over the tracked frames."""

    def __init__(self) -> None:
        self._frames: list[_ClockFrame] = []
        self._index: dict[int, int] = {}
        self._hand = 0

    def __len__(self) -> int:
        return len(self._frames)

    def _mark(self, frame_id: int, **flags: bool) -> None:
        position = self._index.get(frame_id)
        if position is None:
            return
        frame = self._frames[position]
        for name, value in flags.items():
            setattr(frame, name, value)

    def pin(self, frame_id: int) -> None:
        self._mark(frame_id, is_pinned=True)

    def unpin(self, frame_id: int) -> None:
        self._mark(frame_id, is_pinned=False, reference_bit=True)

    def access(self, frame_id: int) -> None:
        self._mark(frame_id, reference_bit=True)

    def evict(self) -> int | None:
        """Sweep once from the hand; clear set bits and take the first clear one.

        Returns None when a full sweep finds no unpinned frame with a clear bit.
        """
        if not self._frames:
            return None
        start = self._hand
        size = len(self._frames)
        while True:
            frame = self._frames[self._hand]
            self._hand = (self._hand + 1) % size
            if not frame.is_pinned:
                if not frame.reference_bit:
                    return frame.frame_id
                frame.reference_bit = False
            if self._hand == start:
                return None

    def add_frame(self, frame_id: int) -> None:
        self._frames.append(_ClockFrame(frame_id))
        self._index[frame_id] = len(self._frames) - 1

    def remove_frame(self, frame_id: int) -> None:
        position = self._index.get(frame_id)
        if position is None:
            return
        if self._hand == position:
            self._hand = (self._hand + 1) % len(self._frames)
        last = self._frames[-1]
        if position != len(self._frames) - 1:
            self._frames[position] = last
            self._index[last.frame_id] = position
        self._frames.pop()
        del self._index[frame_id]
        if not self._frames or self._hand >= len(self._frames):
            self._hand = 0