"""In-memory keyed cache with secondary-key aliases.

Secondary keys point at a primary key, so one stored item can be found
under several identifiers without being duplicated.
"""

import threading
from typing import Any


class KeyedCache:
    """Thread-safe cache where items are reachable by primary or secondary key."""

    def __init__(self):
        self._items: dict[str, Any] = {}
        self._secondary: dict[str, str] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any) -> None:
        """Store value under a primary key, replacing any previous value."""
        with self._lock:
            self._items[key] = value

    def set_secondary_key(self, primary_key: str, secondary_key: str) -> None:
        """Alias secondary_key to an existing primary key.

        Raises:
            KeyError: If the primary key is not present
        """
        with self._lock:
            if primary_key not in self._items:
                raise KeyError(f"no item found with primary key {primary_key!r}")
            self._secondary[secondary_key] = primary_key

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def get(self, key: str) -> Any:
        """Return the item stored under a primary key.

        Raises:
            KeyError: If the key is not present
        """
        with self._lock:
            try:
                return self._items[key]
            except KeyError:
                raise KeyError(f"no item found with primary key {key!r}") from None

    def get_by_secondary_key(self, secondary_key: str) -> Any:
        """Return the item a secondary key points at.

        Raises:
            KeyError: If the secondary key, or the item behind it, is not present
        """
        with self._lock:
            primary_key = self._secondary.get(secondary_key)
            if primary_key is None or primary_key not in self._items:
                raise KeyError(f"no item found with secondary key {secondary_key!r}")
            return self._items[primary_key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
