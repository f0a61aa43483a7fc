"""
Readers for calibration objects stored in local files.
"""

import logging

import uproot

from domain.calibration import ParameterCollection, TimeShiftCurve
from services import consts
from .store import load_document, root_object_to_payload


logger = logging.getLogger(__name__)


def is_file_source(name: str) -> bool:
    """Calibration sources ending with a file extension are read from disk."""
    return name.endswith(consts.FILE_SOURCE_SUFFIXES)


def read_time_shift_file(file_path: str, object_name: str = consts.CALIBRATION_OBJECT_NAME) -> TimeShiftCurve:
    """
    Read a time-shift curve from a ROOT file (TGraph) or a YAML/JSON file.

    Args:
        file_path: Path of the file
        object_name: Name of the TGraph inside a ROOT file

    Returns:
        TimeShiftCurve read from the file
    """
    if file_path.endswith(".root"):
        with uproot.open(file_path) as root_file:
            payload = root_object_to_payload(root_file[object_name])
    else:
        payload = load_document(file_path)

    logger.info(f"Read time shift curve with {len(payload['x'])} points from {file_path}")
    return TimeShiftCurve.from_dict(payload, source=file_path)


def read_parameter_file(file_path: str, parametrization_path: str) -> ParameterCollection:
    """
    Read a parameter collection from a YAML/JSON file.

    The collection is taken from the parametrization_path key when the
    file holds several, otherwise the whole document is used.
    """
    document = load_document(file_path)
    if isinstance(document, dict) and parametrization_path in document:
        document = document[parametrization_path]
    collection = ParameterCollection.from_dict(document)
    logger.info(f"Loaded parameter collection {collection.pass_names} from {file_path}")
    return collection
