"""
Startup resolution of the data-taking period (Run 2 or Run 3).

Resolved once from the configuration and the dataset metadata; the
pipeline consumes the single resulting value afterwards.
"""

import logging

from domain.config import PipelineConfig, ConfigurationError
from domain.metadata import DataTakingPeriod, DatasetMetadata

logger = logging.getLogger(__name__)


def resolve_data_taking_period(config: PipelineConfig, metadata: DatasetMetadata) -> DataTakingPeriod:
    """
    Decide whether the Run 2 or the Run 3 variant processes the dataset.

    With auto_set_process_functions the metadata decides; explicit
    process_run2 / process_run3 settings must then agree with it.

    Raises:
        ConfigurationError: If both variants are enabled, if none can be
            determined, or if the explicit choice contradicts the metadata
    """
    if config.process_run2 and config.process_run3:
        raise ConfigurationError("process_run2 and process_run3 cannot both be enabled")

    explicit = None
    if config.process_run2:
        explicit = DataTakingPeriod.RUN2
    elif config.process_run3:
        explicit = DataTakingPeriod.RUN3

    from_metadata = None
    if config.calibration.auto_set_process_functions and metadata.get("Run"):
        from_metadata = DataTakingPeriod.RUN3 if metadata.is_run3 else DataTakingPeriod.RUN2

    if explicit is None and from_metadata is None:
        if not metadata.is_fully_defined:
            raise ConfigurationError(
                "Cannot determine the data-taking period: set process_run2 or process_run3, "
                f"or provide the metadata keys {', '.join(DatasetMetadata.REQUIRED_KEYS)}"
            )
        from_metadata = DataTakingPeriod.RUN3 if metadata.is_run3 else DataTakingPeriod.RUN2

    if explicit is not None and from_metadata is not None and explicit != from_metadata:
        raise ConfigurationError(
            f"Configured for {explicit} but the dataset metadata says {from_metadata}"
        )

    period = explicit or from_metadata
    logger.info(f"Processing as {period}")
    return period
