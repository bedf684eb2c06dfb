# llm/credential_pool.py
"""
Credential Pool
Ordered generation API keys with a single rotating index, shared by every
session in the process.
"""

import threading
from typing import List, Optional, Sequence, Tuple

from loguru import logger


class CredentialPool:
    """
    Ordered list of API keys plus a current index.

    rotate() is the only mutator. Passing the index the caller observed
    makes it a compare-and-swap: if another caller already rotated past
    that index, the pool is left alone and the current index is returned.
    """

    def __init__(self, keys: Sequence[str]):
        self._keys: List[str] = [k for k in keys if k]
        self._index = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return len(self._keys)

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._index

    def current(self) -> Optional[str]:
        """Active credential, or None for an empty pool"""
        return self.active()[1]

    def active(self) -> Tuple[int, Optional[str]]:
        """(index, credential) read together"""
        with self._lock:
            if not self._keys:
                return 0, None
            return self._index, self._keys[self._index]

    def rotate(self, expected_index: Optional[int] = None) -> int:
        """
        Advance to the next credential, wrapping around

        Args:
            expected_index: Index the caller last used; skip if already moved

        Returns:
            The index now in effect
        """
        with self._lock:
            if not self._keys:
                return 0
            if expected_index is not None and expected_index != self._index:
                return self._index
            self._index = (self._index + 1) % len(self._keys)
            logger.warning(f"Rotated generation credential to #{self._index + 1}/{len(self._keys)}")
            return self._index
