"""
Per-entity in-flight tracking.

Keys are tuples such as ("approve", user_id) or ("edit", message_id). While
a key is held, a second attempt with the same key is refused, which is how
double submits of the same action are ignored.
"""

from contextlib import contextmanager
from typing import Hashable, Iterator


class InFlight:
    def __init__(self) -> None:
        self._keys: set[Hashable] = set()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def begin(self, key: Hashable) -> bool:
        """Claim ``key``. Returns False if it is already held."""
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def end(self, key: Hashable) -> None:
        self._keys.discard(key)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[bool]:
        """Context manager form of begin()/end(); yields whether the key was claimed."""
        claimed = self.begin(key)
        try:
            yield claimed
        finally:
            if claimed:
                self.end(key)
