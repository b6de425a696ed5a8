"""
FIFO queue of frames waiting on a smoothing decision.
"""

from collections import deque
from typing import Any, Iterator, Optional

from vidcrop.core.smart_crop.models import CropResult, HistoryEntry


class CropHistory:
    """
    Pending-change run buffer.

    Frames are appended while the engine is undecided and always drained
    front to back, so their original order is preserved.
    """

    def __init__(self):
        self._entries: deque[HistoryEntry] = deque()

    def add(self, crop: CropResult, image: Any, object_count: int) -> None:
        """Append a frame to the back of the run."""
        self._entries.append(
            HistoryEntry(image=image, crop=crop, object_count=object_count)
        )

    def peek_front(self) -> Optional[HistoryEntry]:
        """Oldest buffered entry, i.e. the frame that proposed the change."""
        return self._entries[0] if self._entries else None

    def pop_front(self) -> Optional[HistoryEntry]:
        """Remove and return the oldest entry."""
        return self._entries.popleft() if self._entries else None

    def drain(self) -> Iterator[HistoryEntry]:
        """Pop every entry, oldest first."""
        while self._entries:
            yield self._entries.popleft()

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)
