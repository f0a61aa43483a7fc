"""
Tests for the calibration stores, the disk cache and the file readers.
"""

import json
from unittest.mock import Mock

import pytest
import yaml

from domain.metadata import CollisionSystem
from services.calibration.cache import CalibrationCache
from services.calibration.collision_system import classify_collision_system
from services.calibration.readers import is_file_source, read_parameter_file, read_time_shift_file
from services.calibration.store import (
    HttpCalibrationStore,
    LocalCalibrationStore,
    decode_payload,
    metadata_matches,
)


def write_object(root, path, name, document):
    directory = root / path
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(yaml.safe_dump(document))


def mock_response(status_code=200, content=b"", headers=None):
    response = Mock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    return response


class TestLocalCalibrationStore:
    """Tests for the directory-backed store."""

    def test_fetch_by_validity(self, tmp_path):
        write_object(tmp_path, "TOF/Calib/Params", "0_1000.yaml", {"version": 1})
        write_object(tmp_path, "TOF/Calib/Params", "1000_2000.yaml", {"version": 2})
        store = LocalCalibrationStore(str(tmp_path))

        assert store.fetch("TOF/Calib/Params", 500) == {"version": 1}
        assert store.fetch("TOF/Calib/Params", 1000) == {"version": 2}
        assert store.fetch("TOF/Calib/Params", 2500) is None

    def test_negative_timestamp_takes_newest(self, tmp_path):
        write_object(tmp_path, "TOF/Calib/Params", "0_1000.yaml", {"version": 1})
        write_object(tmp_path, "TOF/Calib/Params", "1000_2000.yaml", {"version": 2})
        store = LocalCalibrationStore(str(tmp_path))

        assert store.fetch("TOF/Calib/Params", -1) == {"version": 2}

    def test_metadata_filter(self, tmp_path):
        """Objects are matched on the requested metadata."""
        write_object(tmp_path, "TOF/Calib/ShiftPos", "0_1000.yaml", {
            "payload": {"x": [0.0], "y": [10.0]},
            "metadata": {"RecoPassName": "apass3"},
        })
        write_object(tmp_path, "TOF/Calib/ShiftPos", "100_1000.yaml", {
            "payload": {"x": [0.0], "y": [20.0]},
            "metadata": {"RecoPassName": "apass4"},
        })
        store = LocalCalibrationStore(str(tmp_path))

        assert store.fetch("TOF/Calib/ShiftPos", 500, {"RecoPassName": "apass3"})["y"] == [10.0]
        assert store.fetch("TOF/Calib/ShiftPos", 500, {"RecoPassName": "apass4"})["y"] == [20.0]
        assert store.fetch("TOF/Calib/ShiftPos", 500, {"RecoPassName": "cpass0"}) is None

    def test_json_objects(self, tmp_path):
        directory = tmp_path / "GLO/Config/GRPLHCIF"
        directory.mkdir(parents=True)
        (directory / "0_1000.json").write_text(json.dumps({"beam_z": [82, 82]}))

        store = LocalCalibrationStore(str(tmp_path))

        assert store.fetch("GLO/Config/GRPLHCIF", 10) == {"beam_z": [82, 82]}

    def test_ignores_unrelated_files(self, tmp_path):
        write_object(tmp_path, "TOF/Calib/Params", "README.yaml", {"version": 0})
        write_object(tmp_path, "TOF/Calib/Params", "0_1000.txt", {"version": 0})

        assert LocalCalibrationStore(str(tmp_path)).fetch("TOF/Calib/Params", 10) is None

    def test_missing_path(self, tmp_path):
        assert LocalCalibrationStore(str(tmp_path)).fetch("TOF/Calib/Missing", 10) is None


class TestHttpCalibrationStore:
    """Tests for the HTTP store with a mocked session."""

    def test_fetch_builds_url_and_decodes(self):
        session = Mock()
        session.get.return_value = mock_response(
            content=b"x: [-1.0, 1.0]\ny: [10.0, 30.0]\n",
            headers={"Valid-From": "100", "Valid-Until": "200"},
        )
        store = HttpCalibrationStore("http://ccdb.local/", timeout=5, session=session)

        payload = store.fetch("TOF/Calib/ShiftPos", 150, {"RecoPassName": "apass4"})

        assert payload == {"x": [-1.0, 1.0], "y": [10.0, 30.0]}
        session.get.assert_called_once_with(
            "http://ccdb.local/TOF/Calib/ShiftPos/150/RecoPassName=apass4", timeout=5
        )

    def test_memory_cache_within_validity(self):
        """A timestamp inside the validity interval is served from memory."""
        session = Mock()
        session.get.return_value = mock_response(
            content=b'{"passes": {}}',
            headers={"Valid-From": "100", "Valid-Until": "200", "Content-Type": "application/json"},
        )
        store = HttpCalibrationStore("http://ccdb.local", session=session)

        store.fetch("TOF/Calib/Params", 150)
        store.fetch("TOF/Calib/Params", 199)
        assert session.get.call_count == 1

        store.fetch("TOF/Calib/Params", 250)
        assert session.get.call_count == 2

    def test_not_found(self):
        session = Mock()
        session.get.return_value = mock_response(status_code=404)
        store = HttpCalibrationStore("http://ccdb.local", session=session)

        assert store.fetch("TOF/Calib/Params", 150) is None

    def test_http_error_propagates(self):
        session = Mock()
        response = mock_response(status_code=500)
        response.raise_for_status.side_effect = RuntimeError("server error")
        session.get.return_value = response
        store = HttpCalibrationStore("http://ccdb.local", session=session)

        with pytest.raises(RuntimeError, match="server error"):
            store.fetch("TOF/Calib/Params", 150)

    def test_latest_object_url(self):
        """A negative timestamp is left out of the URL."""
        session = Mock()
        session.get.return_value = mock_response(content=b"a: 1\n")
        store = HttpCalibrationStore("http://ccdb.local", timeout=7, session=session)

        store.fetch("GLO/Config/GRPLHCIF", -1)

        session.get.assert_called_once_with("http://ccdb.local/GLO/Config/GRPLHCIF", timeout=7)

    def test_disk_cache_shared_between_stores(self, tmp_path):
        """A second store is served from the disk cache without a request."""
        cache_path = str(tmp_path / "cache" / "calibration.json")
        session = Mock()
        session.get.return_value = mock_response(
            content=b"time_resolution: 55\n",
            headers={"Valid-From": "0", "Valid-Until": "1000"},
        )
        HttpCalibrationStore("http://ccdb.local", cache=CalibrationCache(cache_path), session=session).fetch(
            "TOF/Calib/Params", 10
        )

        other_session = Mock()
        other = HttpCalibrationStore("http://ccdb.local", cache=CalibrationCache(cache_path), session=other_session)

        assert other.fetch("TOF/Calib/Params", 500) == {"time_resolution": 55}
        other_session.get.assert_not_called()


class TestCalibrationCache:
    """Tests for the disk cache."""

    def test_store_and_lookup(self, tmp_path):
        cache = CalibrationCache(str(tmp_path / "cache.json"))

        assert cache.store("TOF/Calib/Params", {"RecoPassName": "apass4"}, 100, 200, {"a": 1})

        assert cache.lookup("TOF/Calib/Params", 150, {"RecoPassName": "apass4"})["payload"] == {"a": 1}
        assert cache.lookup("TOF/Calib/Params", 200, {"RecoPassName": "apass4"}) is None
        assert cache.lookup("TOF/Calib/Params", 150) is None
        assert cache.lookup("TOF/Calib/Params", -1, {"RecoPassName": "apass4"}) is None

    def test_replaces_same_interval(self, tmp_path):
        cache = CalibrationCache(str(tmp_path / "cache.json"))
        cache.store("TOF/Calib/Params", None, 100, 200, {"a": 1})
        cache.store("TOF/Calib/Params", None, 100, 200, {"a": 2})

        entries = cache.load()[CalibrationCache.entry_key("TOF/Calib/Params", None)]

        assert len(entries) == 1
        assert entries[0]["payload"] == {"a": 2}

    def test_lock_timeout(self, tmp_path):
        cache = CalibrationCache(str(tmp_path / "cache.json"), max_wait_time=0)
        with pytest.raises(TimeoutError, match="Could not acquire lock"):
            cache.store("TOF/Calib/Params", None, 0, 1, {})

    def test_corrupt_cache_is_empty(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        cache_file.write_text("{not json")

        assert CalibrationCache(str(cache_file)).load() == {}

    def test_clear(self, tmp_path):
        cache_file = tmp_path / "cache.json"
        cache = CalibrationCache(str(cache_file))
        cache.store("TOF/Calib/Params", None, 0, 1, {})

        assert cache_file.exists()
        assert cache.clear()
        assert not cache_file.exists()


class TestPayloadHelpers:
    """Tests for payload decoding and metadata matching."""

    def test_decode_json(self):
        assert decode_payload(b'{"a": [1, 2]}', "application/json") == {"a": [1, 2]}

    def test_decode_yaml(self):
        assert decode_payload(b"a: [1, 2]\n") == {"a": [1, 2]}

    def test_metadata_matches(self):
        assert metadata_matches({"RecoPassName": "apass4"}, None)
        assert metadata_matches({"RecoPassName": "apass4", "x": "1"}, {"RecoPassName": "apass4"})
        assert not metadata_matches({}, {"RecoPassName": "apass4"})


class TestReaders:
    """Tests for calibration objects read from local files."""

    def test_is_file_source(self):
        assert is_file_source("shift.root")
        assert is_file_source("shift.yaml")
        assert not is_file_source("TOF/Calib/ShiftPos")

    def test_time_shift_file(self, tmp_path):
        path = tmp_path / "shift_pos.yaml"
        path.write_text(yaml.safe_dump({"x": [1.0, -1.0], "y": [30.0, 10.0]}))

        curve = read_time_shift_file(str(path))

        assert curve.x.tolist() == [-1.0, 1.0]
        assert float(curve(0.0)) == pytest.approx(20.0)
        assert float(curve(5.0)) == pytest.approx(30.0)

    def test_parameter_file_with_collection_key(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"TOF/Calib/Params": {"apass4": {"time_resolution": 55.0}}}))

        collection = read_parameter_file(str(path), "TOF/Calib/Params")

        assert collection.pass_names == ["apass4"]
        assert collection.retrieve("apass4") == {"time_resolution": 55.0}


class TestCollisionSystem:
    """Tests for the beam classification."""

    @pytest.mark.parametrize("grp,expected", [
        ({"atomic_number_b1": 1, "atomic_number_b2": 1}, CollisionSystem.PP),
        ({"atomic_number_b1": 82, "atomic_number_b2": 82}, CollisionSystem.PBPB),
        ({"beam_z": [54, 54]}, CollisionSystem.XEXE),
        ({"beam_z": [82, 1]}, CollisionSystem.PPB),
        ({"beam_z": [8, 8]}, CollisionSystem.UNDEFINED),
        ({"other": 1}, CollisionSystem.UNDEFINED),
        (None, CollisionSystem.UNDEFINED),
    ])
    def test_classify(self, grp, expected):
        assert classify_collision_system(grp) == expected
