"""TTL-based JSON file cache.

Each cache instance owns one subdirectory of the cache root and stores one
file per key: ``<cache_root>/<subdirectory>/<key>.json``. A file holds a
``CacheEntry`` serialized as::

    {"data": <value>, "cached_at": "<RFC3339 timestamp>", "etag": "<optional>"}

Expiry is decided at read time from ``cached_at``; nothing sweeps old files.
Writes go to a temporary file in the same directory which is then renamed
over the final path, so readers never see a partially written entry. Two
writers racing on one key resolve as last-writer-wins.
"""

import asyncio
import json
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import aiofiles
import aiofiles.os

from triagecli.domain.errors import CacheCorruptedError, CacheKeyError
from triagecli.domain.interfaces.cache import FileCache
from triagecli.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

APP_DIR_NAME = "triagecli"
CACHE_FILE_SUFFIX = ".json"

# Subdirectories used by the application
MODELS_SUBDIR = "models"
TRIAGE_SUBDIR = "triage"


def cache_dir() -> Path:
    """Returns the default cache root.

    ``$XDG_CACHE_HOME/triagecli`` when the variable is set, otherwise
    ``~/.cache/triagecli``.
    """
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache) / APP_DIR_NAME
    return Path.home() / ".cache" / APP_DIR_NAME


def validate_cache_key(key: str) -> None:
    """Rejects keys that could address a file outside the cache directory.

    Raises:
        CacheKeyError: If the key is empty or contains ``/``, ``\\`` or ``..``.
    """
    if not key:
        raise CacheKeyError("Cache key must not be empty")
    if "/" in key or "\\" in key:
        raise CacheKeyError(f"Cache key must not contain path separators: {key!r}")
    if ".." in key:
        raise CacheKeyError(f"Cache key must not contain '..': {key!r}")


def cache_key_models(provider: str) -> CacheKey:
    """Key for a provider's model list (stored under the ``models`` subdirectory)."""
    return CacheKey(provider)


def cache_key_issue(owner: str, repo: str, number: int) -> CacheKey:
    """Key for a single issue, in the form ``{owner}_{repo}_{number}``."""
    return CacheKey(f"{owner}_{repo}_{number}")


def _parse_timestamp(value: str) -> datetime:
    # fromisoformat() only accepts a trailing 'Z' from Python 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the time it was written and an optional etag."""
    data: Any
    cached_at: datetime
    etag: Optional[str] = None

    @classmethod
    def new(cls, data: Any, etag: Optional[str] = None, now: Optional[datetime] = None) -> "CacheEntry":
        return cls(data=data, cached_at=now or _utcnow(), etag=etag)

    def is_valid(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        """True while the entry is younger than ``ttl``."""
        return (now or _utcnow()) - self.cached_at < ttl

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"data": self.data, "cached_at": self.cached_at.isoformat()}
        if self.etag is not None:
            payload["etag"] = self.etag
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CacheEntry":
        if not isinstance(payload, dict):
            raise TypeError(f"expected a JSON object, got {type(payload).__name__}")
        if not isinstance(payload.get("cached_at"), str):
            raise TypeError("cached_at must be an RFC 3339 timestamp string")
        etag = payload.get("etag")
        if etag is not None and not isinstance(etag, str):
            raise TypeError("etag must be a string")
        return cls(data=payload["data"], cached_at=_parse_timestamp(payload["cached_at"]), etag=etag)


class FileCacheImpl(FileCache):
    """File-backed cache for one subdirectory of the cache root."""

    def __init__(
        self,
        subdirectory: str,
        ttl: Union[timedelta, float],
        cache_root: Optional[Path] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initializes the cache. No directories are created until the first write.

        Args:
            subdirectory: Name of this cache's directory under the root.
            ttl: Maximum entry age, as a timedelta or in seconds.
            cache_root: Root directory (defaults to ``cache_dir()``).
            clock: Returns the current time as an aware datetime.
        """
        validate_cache_key(subdirectory)
        self.subdirectory = subdirectory
        self.ttl = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        self.cache_root = Path(cache_root) if cache_root is not None else cache_dir()
        self.directory = self.cache_root / subdirectory
        self._clock = clock
        logger.debug(f"FileCache initialized: dir={self.directory}, ttl={self.ttl}")

    def path_for(self, key: CacheKey) -> Path:
        """Maps a key to its file path, validating the key first."""
        validate_cache_key(key)
        filename = key if key.endswith(CACHE_FILE_SUFFIX) else f"{key}{CACHE_FILE_SUFFIX}"
        return self.directory / filename

    async def read_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        """Reads the raw entry for a key.

        Returns:
            The entry, or None if no file exists for the key.

        Raises:
            CacheKeyError: If the key is unsafe.
            CacheCorruptedError: If the file is not a valid cache entry.
            OSError: For I/O failures other than a missing file.
        """
        path = self.path_for(key)
        try:
            async with aiofiles.open(path, mode="rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            return None

        try:
            return CacheEntry.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            raise CacheCorruptedError(f"Failed to parse cache file {path}: {e}") from e

    async def lookup(self, key: CacheKey, include_expired: bool = False) -> Tuple[bool, Optional[Any]]:
        entry = await self.read_entry(key)
        if entry is None:
            logger.debug(f"Cache miss: {self.subdirectory}/{key}")
            return False, None
        if not include_expired and not entry.is_valid(self.ttl, now=self._clock()):
            logger.debug(f"Cache expired: {self.subdirectory}/{key} (cached_at={entry.cached_at.isoformat()})")
            return False, None
        logger.debug(f"Cache hit: {self.subdirectory}/{key}")
        return True, entry.data

    async def get(self, key: CacheKey) -> Optional[Any]:
        _, value = await self.lookup(key)
        return value

    async def get_stale(self, key: CacheKey) -> Optional[Any]:
        _, value = await self.lookup(key, include_expired=True)
        return value

    async def set(self, key: CacheKey, value: Any, etag: Optional[str] = None) -> None:
        path = self.path_for(key)
        entry = CacheEntry.new(value, etag=etag, now=self._clock())
        # Serialize before touching the filesystem so bad values leave no trace.
        contents = json.dumps(entry.to_dict(), indent=2, ensure_ascii=False)

        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
                await f.write(contents)
            await aiofiles.os.replace(temp_path, path)
        except BaseException:
            try:
                await aiofiles.os.remove(temp_path)
            except FileNotFoundError:
                pass
            raise
        logger.debug(f"Cached {self.subdirectory}/{key} at {path}")

    async def remove(self, key: CacheKey) -> None:
        path = self.path_for(key)
        try:
            await aiofiles.os.remove(path)
            logger.debug(f"Removed cache entry {self.subdirectory}/{key}")
        except FileNotFoundError:
            pass

    async def clear(self) -> None:
        """Deletes this cache's whole subdirectory."""
        if self.directory.exists():
            await asyncio.to_thread(shutil.rmtree, self.directory)
            logger.info(f"Cleared cache directory: {self.directory}")
        else:
            logger.info(f"Cache directory does not exist, nothing to clear: {self.directory}")
