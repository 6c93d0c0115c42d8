"""Interface for TTL-based caches.

Defines the contract for storing, retrieving and removing cached values
with a fresh read path (respects TTL) and a stale read path (ignores TTL)
for degraded-mode fallback.
"""

import abc
from typing import Any, Optional, Tuple

from ..models.common import CacheKey


class FileCache(abc.ABC):
    """Abstract Base Class for key/value caches with expiry."""

    @abc.abstractmethod
    async def lookup(self, key: CacheKey, include_expired: bool = False) -> Tuple[bool, Optional[Any]]:
        """Looks up a key, telling a stored ``None`` apart from a miss.

        Args:
            key: The cache key to retrieve.
            include_expired: Also return entries older than the TTL.

        Returns:
            ``(True, value)`` when a usable entry exists, ``(False, None)`` otherwise.
        """

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        """Retrieves a value if present and within its TTL.

        Args:
            key: The cache key to retrieve.

        Returns:
            The cached value, or None on a miss or when the entry has expired.

        Raises:
            CacheKeyError: If the key is unsafe.
            CacheCorruptedError: If the stored entry cannot be parsed.
        """

    @abc.abstractmethod
    async def get_stale(self, key: CacheKey) -> Optional[Any]:
        """Retrieves a value regardless of its age.

        Returns:
            The cached value, or None only when no entry exists.
        """

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, etag: Optional[str] = None) -> None:
        """Stores a value, replacing any existing entry for the key.

        Args:
            key: The cache key to store the value under.
            value: A JSON-serializable value.
            etag: Optional validator for conditional requests.
        """

    @abc.abstractmethod
    async def remove(self, key: CacheKey) -> None:
        """Removes the entry for a key. Removing a missing key is not an error."""
