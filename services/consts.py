"""
Centralized constants for the TOF response and the PID tables.
"""

# Speed of light in cm/ps
LIGHT_SPEED_CM_PER_PS = 0.029979245800

# Value written when a PID quantity cannot be computed
NSIGMA_EMPTY_VALUE = -999.0

# Name of the payload inside calibration ROOT files
CALIBRATION_OBJECT_NAME = "ccdb_object"

# Extensions of calibration sources read from local files
FILE_SOURCE_SUFFIXES = (".root", ".yaml", ".yml", ".json")

# Metadata key used to select the reconstruction pass of calibration objects
PASS_METADATA_KEY = "RecoPassName"

# Tiny PID tables
TINY_TABLE_PREFIX = "pidTOF"
FULL_TABLE_PREFIX = "pidTOFFull"
