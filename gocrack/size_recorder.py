"""Writers that only count what passes through them."""

from __future__ import annotations

__all__ = ["WriteSizeRecorder", "WriteSizeLineRecorder"]


class WriteSizeRecorder:
    """Records the total number of bytes written."""

    def __init__(self) -> None:
        self._size = 0

    def write(self, data: bytes) -> int:
        self._size += len(data)
        return len(data)

    @property
    def size(self) -> int:
        """Total bytes written so far."""
        return self._size


class WriteSizeLineRecorder:
    """Records the total bytes written and the number of lines."""

    def __init__(self) -> None:
        self._size = 0
        self._newlines = 0

    def write(self, data: bytes) -> int:
        self._size += len(data)
        self._newlines += bytes(data).count(b"\n")
        return len(data)

    @property
    def size(self) -> int:
        """Total bytes written so far."""
        return self._size

    @property
    def lines(self) -> int:
        """Number of lines seen: newlines plus one."""
        return self._newlines + 1