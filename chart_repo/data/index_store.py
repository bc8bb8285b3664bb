from __future__ import annotations

import threading


class IndexStore:
    """
    Holds the serialized index.yaml currently served to clients.

    install() swaps in a complete buffer under the lock; read() returns
    whichever buffer is installed at that moment. Buffers are immutable
    bytes, so a reader can never see a partially built document.
    """

    def __init__(self, initial: bytes = b""):
        self._lock = threading.Lock()
        self._index = bytes(initial)

    def install(self, index: bytes) -> None:
        index = bytes(index)
        with self._lock:
            self._index = index

    def read(self) -> bytes:
        with self._lock:
            return self._index
