"""
Configuration domain models.

Validated configuration objects for the TOF PID pipeline.
"""

from dataclasses import dataclass, field
from typing import Optional

from .species import Species, ALL_SPECIES, DEFAULT_EVENT_TIME_HYPOTHESES


# Light travel per cm of the luminous region, in ps
PS_PER_CM = 33.356409

PASS_FROM_METADATA = "metadata"

# Hypothesis combinations grow as n_hypotheses ** max_tracks_in_set
MAX_TRACKS_IN_SET = 12
MAX_HYPOTHESIS_COMBINATIONS = 3 ** MAX_TRACKS_IN_SET


class ConfigurationError(ValueError):
    """Dataset-wide configuration problem that must abort the run."""


@dataclass(frozen=True)
class TaskConfig:
    """Configuration for which stages to run."""

    do_event_time: bool = True
    do_nsigma: bool = True
    do_beta_mass: bool = False

    def __post_init__(self):
        """Stages after the event time need it."""
        if (self.do_nsigma or self.do_beta_mass) and not self.do_event_time:
            raise ValueError("do_nsigma and do_beta_mass require do_event_time")

    def any_enabled(self) -> bool:
        """Check if any task is enabled."""
        return any([
            self.do_event_time,
            self.do_nsigma,
            self.do_beta_mass,
        ])


@dataclass(frozen=True)
class CalibrationConfig:
    """Where and how the TOF response parameters are fetched."""

    # Calibration store
    url: str = "http://alice-ccdb.cern.ch"
    local_store_path: Optional[str] = None
    cache_path: Optional[str] = None
    request_timeout: int = 60
    grplhcif_path: str = "GLO/Config/GRPLHCIF"
    timestamp: int = -1

    # Time shift curves, empty means none; paths ending in .root are files
    time_shift_path_pos: str = ""
    time_shift_path_neg: str = ""
    time_shift_path_pos_mc: str = ""
    time_shift_path_neg_mc: str = ""

    # Resolution parametrization
    param_file_name: str = ""
    parametrization_path: str = "TOF/Calib/Params"
    reconstruction_pass: str = ""
    reconstruction_pass_default: str = "unanchored"
    fatal_on_pass_not_available: bool = True
    enable_time_dependent_response: bool = False

    # -1 autodetects from the GRPLHCIF object
    collision_system: int = -1
    auto_set_process_functions: bool = True

    def __post_init__(self):
        """Validate calibration configuration."""
        if self.collision_system not in (-1, 0, 1, 2, 3):
            raise ValueError(f"collision_system must be one of -1, 0, 1, 2, 3, got {self.collision_system}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if not self.parametrization_path and not self.param_file_name:
            raise ValueError("parametrization_path cannot be empty when no param_file_name is given")

    @property
    def pass_from_metadata(self) -> bool:
        return self.reconstruction_pass == PASS_FROM_METADATA


@dataclass(frozen=True)
class EventTimeConfig:
    """Configuration of the event-time estimation and combination."""

    # Track sample for the TOF event time
    min_momentum: float = 0.5
    max_momentum: float = 2.0

    # TOF event times beyond this are discarded, <= 0 disables the cut
    max_tof_event_time: float = 100000.0
    require_event_selection: bool = False

    # -1 autoset from the collision system, 0 off, 1 on
    compute_with_tof: int = -1
    compute_with_ft0: int = -1

    # Combinatorial algorithm
    max_tracks_in_set: int = 10
    diamond_cm: float = 6.0
    hypotheses: tuple[str, ...] = tuple(s.short_name for s in DEFAULT_EVENT_TIME_HYPOTHESES)
    min_tracks: int = 2
    outlier_cut: float = 4.0
    max_iterations: int = 5

    # Bias removal
    remove_bias: bool = True
    bias_exclusion_count: int = 2

    def __post_init__(self):
        """Validate event time configuration."""
        if self.min_momentum < 0:
            raise ValueError(f"min_momentum must be non-negative, got {self.min_momentum}")
        if self.max_momentum <= self.min_momentum:
            raise ValueError(
                f"max_momentum ({self.max_momentum}) must be larger than "
                f"min_momentum ({self.min_momentum})"
            )
        if self.compute_with_tof not in (-1, 0, 1):
            raise ValueError(f"compute_with_tof must be -1, 0 or 1, got {self.compute_with_tof}")
        if self.compute_with_ft0 not in (-1, 0, 1):
            raise ValueError(f"compute_with_ft0 must be -1, 0 or 1, got {self.compute_with_ft0}")
        if not 2 <= self.max_tracks_in_set <= MAX_TRACKS_IN_SET:
            raise ValueError(
                f"max_tracks_in_set must be between 2 and {MAX_TRACKS_IN_SET}, got {self.max_tracks_in_set}"
            )
        if self.diamond_cm <= 0:
            raise ValueError(f"diamond_cm must be positive, got {self.diamond_cm}")
        if not self.hypotheses:
            raise ValueError("hypotheses cannot be empty")
        if self.min_tracks < 2:
            raise ValueError(f"min_tracks must be at least 2, got {self.min_tracks}")
        if self.outlier_cut <= 0:
            raise ValueError(f"outlier_cut must be positive, got {self.outlier_cut}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.bias_exclusion_count < 1:
            raise ValueError(f"bias_exclusion_count must be at least 1, got {self.bias_exclusion_count}")
        species = self.hypothesis_species
        if len(set(species)) != len(species):
            raise ValueError(f"hypotheses must not repeat a species, got {list(self.hypotheses)}")
        n_combinations = len(species) ** self.max_tracks_in_set
        if n_combinations > MAX_HYPOTHESIS_COMBINATIONS:
            raise ValueError(
                f"{len(species)} hypotheses with max_tracks_in_set={self.max_tracks_in_set} give "
                f"{n_combinations} combinations per set, the limit is {MAX_HYPOTHESIS_COMBINATIONS}"
            )

    @property
    def diamond_error(self) -> float:
        """Event-time error of the diamond prior (ps)."""
        return self.diamond_cm * PS_PER_CM

    @property
    def diamond_weight(self) -> float:
        """Inverse variance of the diamond prior, the weight floor."""
        return 1.0 / (self.diamond_error * self.diamond_error)

    @property
    def hypothesis_species(self) -> tuple[Species, ...]:
        return tuple(Species.from_name(name) for name in self.hypotheses)


@dataclass(frozen=True)
class NsigmaConfig:
    """
    Which PID tables to produce.

    Per species flags: -1 enables the table if it is listed in
    requested_tables, 0 disables it, 1 enables it.
    """

    enable: dict = field(default_factory=dict)
    enable_full: dict = field(default_factory=dict)
    requested_tables: tuple[str, ...] = field(default_factory=tuple)
    enable_beta: bool = False
    enable_mass: bool = False
    use_tof_params_for_beta_mass: bool = False

    def __post_init__(self):
        """Validate species flags."""
        for flags in (self.enable, self.enable_full):
            for name, value in flags.items():
                Species.from_name(name)
                if value not in (-1, 0, 1):
                    raise ValueError(f"Species flag for '{name}' must be -1, 0 or 1, got {value}")

    def _resolve(self, flags: dict, table_prefix: str) -> list[Species]:
        enabled = []
        for species in ALL_SPECIES:
            flag = -1
            for name, value in flags.items():
                if Species.from_name(name) is species:
                    flag = value
            if flag == -1:
                flag = 1 if f"{table_prefix}{species.short_name}" in self.requested_tables else 0
            if flag == 1:
                enabled.append(species)
        return enabled

    def enabled_species(self) -> list[Species]:
        """Species with a tiny (quantized) nsigma table."""
        return self._resolve(self.enable, "pidTOF")

    def enabled_species_full(self) -> list[Species]:
        """Species with a full (resolution, nsigma) table."""
        return self._resolve(self.enable_full, "pidTOFFull")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Complete pipeline configuration.

    Immutable configuration object validated at creation.
    """

    tasks: TaskConfig = field(default_factory=TaskConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    event_time: EventTimeConfig = field(default_factory=EventTimeConfig)
    nsigma: NsigmaConfig = field(default_factory=NsigmaConfig)

    # Processing variant, both False lets the metadata decide
    process_run2: bool = False
    process_run3: bool = False
    dataset_metadata: dict = field(default_factory=dict)

    # Run metadata
    run_name: str = "tof_pid_run"
    input_path: Optional[str] = None
    output_path: Optional[str] = None
    tracks_tree: str = "O2track"
    collisions_tree: str = "O2collision"
    bc_tree: str = "O2bc"
    input_schema: str = "native"
    show_progress_bar: bool = False

    def __post_init__(self):
        """Validate pipeline configuration."""
        if not self.tasks.any_enabled():
            raise ValueError("At least one task must be enabled")

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'PipelineConfig':
        """
        Create PipelineConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated PipelineConfig instance
        """
        tasks_dict = config_dict.get("tasks", {})
        tasks = TaskConfig(
            do_event_time=tasks_dict.get("do_event_time", True),
            do_nsigma=tasks_dict.get("do_nsigma", True),
            do_beta_mass=tasks_dict.get("do_beta_mass", False),
        )

        calibration = CalibrationConfig(**config_dict.get("calibration", {}))

        event_time_dict = dict(config_dict.get("event_time", {}))
        if "hypotheses" in event_time_dict:
            event_time_dict["hypotheses"] = tuple(event_time_dict["hypotheses"])
        event_time = EventTimeConfig(**event_time_dict)

        nsigma_dict = dict(config_dict.get("nsigma", {}))
        nsigma_dict["requested_tables"] = tuple(nsigma_dict.get("requested_tables", []))
        nsigma = NsigmaConfig(**nsigma_dict)

        run_metadata = config_dict.get("run_metadata", {})

        return cls(
            tasks=tasks,
            calibration=calibration,
            event_time=event_time,
            nsigma=nsigma,
            process_run2=config_dict.get("process_run2", False),
            process_run3=config_dict.get("process_run3", False),
            dataset_metadata=config_dict.get("dataset_metadata", {}) or {},
            run_name=run_metadata.get("run_name", "tof_pid_run"),
            input_path=run_metadata.get("input_path"),
            output_path=run_metadata.get("output_path"),
            tracks_tree=run_metadata.get("tracks_tree", "O2track"),
            collisions_tree=run_metadata.get("collisions_tree", "O2collision"),
            bc_tree=run_metadata.get("bc_tree", "O2bc"),
            input_schema=run_metadata.get("input_schema", "native"),
            show_progress_bar=run_metadata.get("show_progress_bar", False),
        )
