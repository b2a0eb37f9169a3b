"""
Two-tier image cache: an in-memory LRU in front of a directory of JSON files.

Images never change for a given key, so entries only age out after a long
fixed window. Each disk file is ``<sanitized key>.cache`` holding
``{"imageData": <base64>, "timestamp": <epoch seconds>, "key": <original key>}``.
"""
import logging
import os
import re
import tempfile
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from treblesurf.cache.single_flight import SingleFlight
from treblesurf.cache.ttl_cache import Clock
from treblesurf.network.errors import ImageDecodeFailedError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TTL = 30 * 24 * 60 * 60
SPOT_IMAGE_PREFIX = "spot_"
REPORT_IMAGE_PREFIX = "report_"

_INVALID_FILENAME_CHARS = re.compile(r'[:/\\?%*|"<>]')

_IMAGE_SIGNATURES = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",  # JPEG
    b"GIF87a",
    b"GIF89a",
)


def spot_image_key(spot_id: str) -> str:
    return f"{SPOT_IMAGE_PREFIX}{spot_id}"


def report_image_key(key: str) -> str:
    return f"{REPORT_IMAGE_PREFIX}{key}"


def sanitize_filename(key: str) -> str:
    """Replace characters that are not safe in file names with underscores."""
    return _INVALID_FILENAME_CHARS.sub("_", key)


def looks_like_image(data: bytes) -> bool:
    """Sniff the leading bytes for PNG, JPEG, GIF, WEBP or HEIC signatures."""
    if not data:
        return False
    if data.startswith(_IMAGE_SIGNATURES):
        return True
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return True
    # ISO base media: "....ftypheic" and friends
    return data[4:8] == b"ftyp" and data[8:12] in (b"heic", b"heix", b"mif1", b"msf1")


class CachedImageData(BaseModel):
    """One cached image as stored on disk."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    key: str
    image_data: bytes = Field(alias="imageData")
    timestamp: float

    def is_expired(self, now: float, ttl: float = DEFAULT_IMAGE_TTL) -> bool:
        return now - self.timestamp > ttl


@dataclass(frozen=True)
class ImageCacheStats:
    """Counts and sizes of the image cache, for diagnostics."""

    total_images: int
    spot_images: int
    report_images: int
    memory_bytes: int
    disk_bytes: int

    @property
    def memory_usage(self) -> str:
        return f"{self.memory_bytes / (1024 * 1024):.2f} MB"

    @property
    def disk_usage(self) -> str:
        return f"{self.disk_bytes / (1024 * 1024):.2f} MB"


class ImageCache:
    """
    Image bytes keyed by ``spot_<id>`` or ``report_<key>``.

    Reads check memory first, then disk (promoting disk hits into memory),
    and only then the network. Writes go to both tiers. Disk errors are
    logged and degrade to a memory-only cache rather than failing the caller.
    """

    def __init__(
        self,
        directory: Path,
        ttl: float = DEFAULT_IMAGE_TTL,
        memory_limit: int = 10,
        clock: Clock = time.time,
    ) -> None:
        self.directory = directory
        self.ttl = ttl
        self.memory_limit = memory_limit
        self._clock = clock
        # Least recently used first
        self._memory: OrderedDict[str, CachedImageData] = OrderedDict()
        self._flights: SingleFlight[str, bytes] = SingleFlight()
        # Token of the in-flight fetch per key; remove() and clear() drop it
        self._pending: dict[str, object] = {}

    def get(self, key: str) -> bytes | None:
        """Return cached bytes for ``key``, or None on a miss or expiry."""
        now = self._clock()
        cached = self._memory.get(key)
        if cached is not None:
            if not cached.is_expired(now, self.ttl):
                self._memory.move_to_end(key)
                logger.debug("image_cache_hit tier=memory key=%s", key)
                return cached.image_data
            self.remove(key)
            return None

        cached = self._read_disk(key)
        if cached is None:
            logger.debug("image_cache_miss key=%s", key)
            return None
        if cached.is_expired(now, self.ttl):
            self._remove_disk(key)
            return None
        self._memory[key] = cached
        logger.debug("image_cache_hit tier=disk key=%s", key)
        return cached.image_data

    def put(self, key: str, data: bytes) -> None:
        cached = CachedImageData(key=key, image_data=data, timestamp=self._clock())
        self._memory[key] = cached
        self._memory.move_to_end(key)
        self._write_disk(cached)
        logger.debug("image_cache_set key=%s bytes=%s", key, len(data))

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[bytes]],
        validator: Callable[[bytes], bool] | None = None,
    ) -> bytes:
        """
        Return cached bytes for ``key``, fetching and caching them on a miss.

        With a ``validator``, cached bytes that fail it are evicted and
        refetched, and fetched bytes that fail it are not cached.

        Raises:
            ImageDecodeFailedError: If the fetched bytes fail validation.
        """
        cached = self.get(key)
        if cached is not None:
            if validator is None or validator(cached):
                return cached
            logger.warning("image_cache_corrupt key=%s", key)
            self.remove(key)

        token = object()
        if not self._flights.in_flight(key):
            self._pending[key] = token

        async def fetch_and_store() -> bytes:
            try:
                data = await fetcher()
            finally:
                current = self._pending.get(key) is token
                if current:
                    del self._pending[key]
            if validator is not None and not validator(data):
                raise ImageDecodeFailedError(key)
            if current:
                self.put(key, data)
            else:
                logger.debug("image_cache_discard_cleared key=%s", key)
            return data

        return await self._flights.do(key, fetch_and_store)

    def remove(self, key: str) -> None:
        self._memory.pop(key, None)
        self._pending.pop(key, None)
        self._flights.forget(key)
        self._remove_disk(key)
        logger.debug("image_cache_remove key=%s", key)

    def clear(self) -> None:
        """Drop every entry from memory and disk, discarding fetches still in flight."""
        self._memory.clear()
        self._pending.clear()
        self._flights.forget()
        if self.directory.exists():
            for path in self.directory.glob("*.cache"):
                path.unlink(missing_ok=True)
        logger.info("image_cache_cleared")

    def sweep_expired(self) -> int:
        """Remove expired entries from both tiers and return how many were removed."""
        now = self._clock()
        expired = [k for k, v in self._memory.items() if v.is_expired(now, self.ttl)]
        for key in expired:
            self._memory.pop(key, None)
            self._remove_disk(key)
        removed = len(expired)
        if self.directory.exists():
            for path in self.directory.glob("*.cache"):
                cached = self._load_file(path)
                if cached is None:
                    continue
                if cached.is_expired(now, self.ttl):
                    path.unlink(missing_ok=True)
                    removed += 1
        if removed:
            logger.info("image_cache_sweep removed=%s", removed)
        return removed

    def handle_memory_pressure(self) -> int:
        """
        Shrink the memory tier to the ``memory_limit`` most recently used entries.

        Disk copies are kept. Returns the number of entries dropped from memory.
        """
        dropped = 0
        while len(self._memory) > self.memory_limit:
            self._memory.popitem(last=False)
            dropped += 1
        if dropped:
            logger.info("image_cache_memory_pressure dropped=%s kept=%s", dropped, len(self._memory))
        return dropped

    def load_from_disk(self) -> int:
        """
        Populate the memory tier from the disk directory.

        Expired and undecodable files are deleted. Returns the number loaded.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("image_cache_dir_unavailable path=%s", self.directory)
            return 0
        now = self._clock()
        loaded = 0
        for path in sorted(self.directory.glob("*.cache"), key=lambda p: p.stat().st_mtime):
            cached = self._load_file(path)
            if cached is None:
                continue
            if cached.is_expired(now, self.ttl):
                path.unlink(missing_ok=True)
                continue
            # The original key comes from the payload, not the sanitized file name
            self._memory[cached.key] = cached
            loaded += 1
        logger.info("image_cache_loaded count=%s", loaded)
        return loaded

    def memory_keys(self) -> list[str]:
        """Keys in the memory tier, least recently used first."""
        return list(self._memory)

    def stats(self) -> ImageCacheStats:
        keys = self._all_keys()
        return ImageCacheStats(
            total_images=len(keys),
            spot_images=sum(1 for k in keys if k.startswith(SPOT_IMAGE_PREFIX)),
            report_images=sum(1 for k in keys if k.startswith(REPORT_IMAGE_PREFIX)),
            memory_bytes=sum(len(v.image_data) for v in self._memory.values()),
            disk_bytes=self._disk_bytes(),
        )

    def export_info(self) -> str:
        """Human readable dump of the cache contents."""
        stats = self.stats()
        now = self._clock()
        generated = datetime.fromtimestamp(now, tz=UTC).strftime("%Y-%m-%d %H:%M:%S %Z")
        lines = [
            "Image Cache Information",
            "=======================",
            f"Generated: {generated}",
            "",
            "Statistics:",
            f"- Total Images: {stats.total_images}",
            f"- Spot Images: {stats.spot_images}",
            f"- Report Images: {stats.report_images}",
            f"- Memory Usage: {stats.memory_usage}",
            f"- Disk Usage: {stats.disk_usage}",
            "",
            "Cached Keys:",
        ]
        for key in sorted(self._memory):
            cached = self._memory[key]
            age = _format_age(now - cached.timestamp)
            lines.append(f"- {key}: {age} old, {len(cached.image_data) / 1024:.1f} KB")
        return "\n".join(lines)

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{sanitize_filename(key)}.cache"

    def _read_disk(self, key: str) -> CachedImageData | None:
        path = self._path_for(key)
        if not path.exists():
            return None
        return self._load_file(path)

    def _load_file(self, path: Path) -> CachedImageData | None:
        """Decode one cache file, deleting it if it is corrupt."""
        try:
            return CachedImageData.model_validate_json(path.read_bytes())
        except (ValidationError, ValueError) as e:
            logger.warning("image_cache_corrupt_file path=%s error=%s", path.name, e)
            path.unlink(missing_ok=True)
            return None
        except OSError as e:
            logger.warning("image_cache_read_failed path=%s error=%s", path.name, e)
            return None

    def _write_disk(self, cached: CachedImageData) -> None:
        path = self._path_for(cached.key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(cached.model_dump_json(by_alias=True).encode())
            os.replace(tmp, path)
        except OSError:
            logger.exception("image_cache_write_failed key=%s", cached.key)

    def _remove_disk(self, key: str) -> None:
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError:
            logger.exception("image_cache_remove_failed key=%s", key)

    def _all_keys(self) -> set[str]:
        # Disk file stems are sanitized, so match them against sanitized memory keys
        in_memory = {sanitize_filename(k) for k in self._memory}
        keys = set(self._memory)
        if self.directory.exists():
            keys.update(p.stem for p in self.directory.glob("*.cache") if p.stem not in in_memory)
        return keys

    def _disk_bytes(self) -> int:
        if not self.directory.exists():
            return 0
        total = 0
        for path in self.directory.glob("*.cache"):
            try:
                total += path.stat().st_size
            except OSError:
                continue
        return total


def _format_age(seconds: float) -> str:
    days, rem = divmod(int(seconds), 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return "Just now"
