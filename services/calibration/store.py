"""
Calibration stores - Fetch calibration objects by path and timestamp.

Single responsibility: resolve (path, timestamp, metadata) to a payload.
"""

import io
import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests
import uproot
import yaml

from services import consts
from .cache import CalibrationCache


class CalibrationStore(ABC):
    """
    Keyed calibration store.

    A negative timestamp asks for the most recent object.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def fetch(
        self,
        path: str,
        timestamp: int,
        metadata: Optional[dict] = None
    ) -> Optional[Any]:
        """
        Fetch the object stored under path and valid at timestamp.

        Args:
            path: Object path, e.g. "TOF/Calib/Params"
            timestamp: Timestamp in ms
            metadata: Key/value pairs the object must carry

        Returns:
            Decoded payload, or None if no object matches
        """
        pass


class LocalCalibrationStore(CalibrationStore):
    """
    Calibration store backed by a directory tree.

    Objects live in <root>/<path>/<valid_from>_<valid_until>.yaml (or
    .json). A file holds either the payload itself or a mapping with
    "payload" and optional "metadata" keys. When several objects are
    valid, the one with the latest valid_from wins.
    """

    def __init__(self, root: str):
        super().__init__()
        self.root = root

    def fetch(
        self,
        path: str,
        timestamp: int,
        metadata: Optional[dict] = None
    ) -> Optional[Any]:
        directory = os.path.join(self.root, path)
        if not os.path.isdir(directory):
            self.logger.debug(f"No objects stored under {path}")
            return None

        candidates = []
        for file_name in sorted(os.listdir(directory)):
            validity = self._parse_validity(file_name)
            if validity is None:
                continue
            valid_from, valid_until = validity
            if timestamp >= 0 and not (valid_from <= timestamp < valid_until):
                continue
            candidates.append((valid_from, file_name))

        # Newest first, then the first whose metadata matches
        for _, file_name in sorted(candidates, reverse=True):
            document = load_document(os.path.join(directory, file_name))
            payload, object_metadata = split_payload(document)
            if metadata_matches(object_metadata, metadata):
                self.logger.debug(f"Fetched {path}/{file_name} for timestamp {timestamp}")
                return payload

        self.logger.debug(f"No object under {path} valid at {timestamp} with metadata {metadata}")
        return None

    @staticmethod
    def _parse_validity(file_name: str) -> Optional[tuple[int, int]]:
        stem, suffix = os.path.splitext(file_name)
        if suffix not in (".yaml", ".yml", ".json"):
            return None
        parts = stem.split("_")
        if len(parts) != 2:
            return None
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return None


class HttpCalibrationStore(CalibrationStore):
    """
    Calibration store served over HTTP with the CCDB REST layout.

    Objects are requested as <url>/<path>/<timestamp>/<key>=<value>.
    Responses are kept in memory for their validity interval and, when a
    CalibrationCache is given, on disk.
    """

    def __init__(
        self,
        url: str,
        timeout: int = 60,
        cache: Optional[CalibrationCache] = None,
        session: Optional[requests.Session] = None
    ):
        super().__init__()
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.cache = cache
        self.session = session or requests.Session()
        self._memory: dict[str, tuple[int, int, Any]] = {}

    def fetch(
        self,
        path: str,
        timestamp: int,
        metadata: Optional[dict] = None
    ) -> Optional[Any]:
        key = self._memory_key(path, metadata)

        # Reuse an object as long as the timestamp is inside its validity
        cached = self._memory.get(key)
        if cached is not None and timestamp >= 0:
            valid_from, valid_until, payload = cached
            if valid_from <= timestamp < valid_until:
                return payload

        if self.cache is not None:
            entry = self.cache.lookup(path, timestamp, metadata)
            if entry is not None:
                self._memory[key] = (entry["valid_from"], entry["valid_until"], entry["payload"])
                return entry["payload"]

        response = self.session.get(self._object_url(path, timestamp, metadata), timeout=self.timeout)
        if response.status_code == 404:
            self.logger.info(f"Object {path} not found for timestamp {timestamp} and metadata {metadata}")
            return None
        response.raise_for_status()

        payload = decode_payload(response.content, response.headers.get("Content-Type", ""))
        valid_from = int(response.headers.get("Valid-From", timestamp if timestamp >= 0 else 0))
        valid_until = int(response.headers.get("Valid-Until", valid_from + 1))
        self._memory[key] = (valid_from, valid_until, payload)

        if self.cache is not None:
            try:
                self.cache.store(path, metadata, valid_from, valid_until, payload)
            except TimeoutError as e:
                self.logger.warning(f"Could not save {path} to cache: {e}")

        self.logger.info(f"Fetched {path} valid in [{valid_from}, {valid_until})")
        return payload

    def _object_url(self, path: str, timestamp: int, metadata: Optional[dict]) -> str:
        parts = [self.url, path.strip("/")]
        if timestamp >= 0:
            parts.append(str(timestamp))
        for name, value in sorted((metadata or {}).items()):
            parts.append(f"{name}={value}")
        return "/".join(parts)

    @staticmethod
    def _memory_key(path: str, metadata: Optional[dict]) -> str:
        return json.dumps([path, sorted((metadata or {}).items())])


def load_document(file_path: str) -> Any:
    """Load a YAML or JSON document from disk."""
    with open(file_path, "r") as f:
        if file_path.endswith(".json"):
            return json.load(f)
        return yaml.safe_load(f)


def split_payload(document: Any) -> tuple[Any, dict]:
    """Separate the payload of a stored document from its metadata."""
    if isinstance(document, dict) and "payload" in document:
        return document["payload"], dict(document.get("metadata") or {})
    return document, {}


def metadata_matches(object_metadata: dict, requested: Optional[dict]) -> bool:
    """Check that every requested key is carried with the same value."""
    for name, value in (requested or {}).items():
        if str(object_metadata.get(name)) != str(value):
            return False
    return True


def decode_payload(content: bytes, content_type: str = "") -> Any:
    """
    Decode a fetched calibration object.

    ROOT files are opened with uproot and their calibration object is
    converted to plain Python; anything else is parsed as YAML (a
    superset of JSON).
    """
    if content[:4] == b"root":
        with uproot.open(io.BytesIO(content)) as root_file:
            return root_object_to_payload(root_file[consts.CALIBRATION_OBJECT_NAME])

    if "json" in content_type:
        return json.loads(content)
    return yaml.safe_load(content)


def root_object_to_payload(obj: Any) -> Any:
    """
    Convert an uproot-read calibration object to plain Python.

    TGraphs become {"x": [...], "y": [...]}.
    """
    if obj.classname.startswith("TGraph"):
        x, y = obj.values(axis="both")
        return {"x": [float(v) for v in x], "y": [float(v) for v in y]}
    raise ValueError(f"Unsupported calibration object type '{obj.classname}'")
