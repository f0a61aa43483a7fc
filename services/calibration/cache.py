"""
CalibrationCache service - Caches fetched calibration objects to disk.

Single responsibility: Load/save calibration payloads with file locking.
"""

import json
import os
import time
import logging
from typing import Any, Optional


class CalibrationCache:
    """
    Disk cache of calibration objects keyed by path and metadata.

    Each entry keeps the validity interval of the object so that any
    timestamp inside it is served without a new request. Writes use an
    exclusive lock file so that several jobs can share one cache.
    """

    def __init__(self, cache_path: str, max_wait_time: int = 60):
        """
        Initialize calibration cache.

        Args:
            cache_path: Path to cache file
            max_wait_time: Maximum seconds to wait for lock
        """
        self.cache_path = cache_path
        self.lock_path = f"{cache_path}.lock"
        self.max_wait_time = max_wait_time
        self.wait_interval = 1

    @staticmethod
    def entry_key(path: str, metadata: Optional[dict]) -> str:
        return json.dumps([path, sorted((metadata or {}).items())])

    def load(self) -> dict:
        """
        Load cached entries from disk.

        Returns:
            Dict of entry key to list of entries, empty if the cache is
            missing or unreadable
        """
        if not os.path.exists(self.cache_path):
            return {}

        try:
            with open(self.cache_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logging.warning(f"Failed to load calibration cache from {self.cache_path}: {e}")
            return {}

    def lookup(self, path: str, timestamp: int, metadata: Optional[dict] = None) -> Optional[dict]:
        """
        Find a cached entry valid at timestamp.

        Returns:
            Entry with valid_from, valid_until and payload, or None
        """
        if timestamp < 0:
            return None
        entries = self.load().get(self.entry_key(path, metadata), [])
        for entry in entries:
            if entry["valid_from"] <= timestamp < entry["valid_until"]:
                logging.debug(f"Calibration cache hit for {path} at {timestamp}")
                return entry
        return None

    def store(
        self,
        path: str,
        metadata: Optional[dict],
        valid_from: int,
        valid_until: int,
        payload: Any
    ) -> bool:
        """
        Add an entry and write the cache back to disk.

        Raises:
            TimeoutError: If lock cannot be acquired within max_wait_time
        """
        cache_dir = os.path.dirname(self.cache_path)
        if cache_dir:
            os.makedirs(cache_dir, exist_ok=True)

        if not self._acquire_lock():
            raise TimeoutError(
                f"Could not acquire lock for {self.cache_path} "
                f"after {self.max_wait_time} seconds"
            )

        try:
            data = self.load()
            key = self.entry_key(path, metadata)
            entries = [e for e in data.get(key, []) if e["valid_from"] != valid_from]
            entries.append({
                "valid_from": valid_from,
                "valid_until": valid_until,
                "payload": payload,
            })
            data[key] = sorted(entries, key=lambda e: e["valid_from"])

            # Write atomically using temp file + rename
            temp_path = f"{self.cache_path}.tmp"
            with open(temp_path, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.cache_path)

            logging.debug(f"Saved {path} [{valid_from}, {valid_until}) to cache: {self.cache_path}")
            return True

        finally:
            self._release_lock()

    def _acquire_lock(self) -> bool:
        """
        Try to acquire exclusive lock on cache file.

        Waits up to max_wait_time for lock to become available.

        Returns:
            True if lock acquired, False if timeout
        """
        elapsed = 0

        while elapsed < self.max_wait_time:
            try:
                lock_fd = os.open(
                    self.lock_path,
                    os.O_CREAT | os.O_EXCL | os.O_WRONLY
                )
                os.close(lock_fd)
                return True

            except FileExistsError:
                logging.debug(
                    f"Lock file exists, waiting... (waited {elapsed}s)"
                )
                time.sleep(self.wait_interval)
                elapsed += self.wait_interval

        return False

    def _release_lock(self):
        """Release the lock by removing lock file."""
        if os.path.exists(self.lock_path):
            try:
                os.unlink(self.lock_path)
            except OSError as e:
                logging.warning(f"Failed to release lock: {e}")

    def clear(self) -> bool:
        """
        Clear the cache by removing cache file.

        Returns:
            True if cache was cleared, False otherwise
        """
        if not os.path.exists(self.cache_path):
            return True

        try:
            os.remove(self.cache_path)
            logging.info(f"Cleared calibration cache: {self.cache_path}")
            return True
        except OSError as e:
            logging.warning(f"Failed to clear cache {self.cache_path}: {e}")
            return False
