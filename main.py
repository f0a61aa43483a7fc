#!/usr/bin/env python3
"""
Main entry point for the TOF PID pipeline.

Reads the track, collision and bunch-crossing trees of the input files,
estimates the event time of every track, computes the TOF Nsigma of the
enabled species and writes one output file per input file.
"""

import os
import sys
import logging
import argparse
from datetime import datetime

import yaml

from domain.config import PipelineConfig
from pipeline.executor import PipelineExecutor


def default_output_dir(run_name: str, base_output_dir: str = "./output") -> str:
    """Timestamped output directory used when no output_path is configured."""
    return os.path.join(base_output_dir, f"{run_name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}")


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TOF PID - event time and Nsigma",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with the default config.yaml
  python main.py

  # Override input and output from the command line
  python main.py --config my_config.yaml --input ./data/AO2D_*.root --output ./output

  # Dry-run to validate config
  python main.py --dry-run
        """
    )

    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Validate configuration without running pipeline"
    )
    parser.add_argument(
        "--input", type=str, default=None,
        help="Input ROOT file, directory or glob (overrides run_metadata.input_path)"
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Output directory (overrides run_metadata.output_path)"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("TOF PID - event time and Nsigma")
    logger.info("=" * 60)

    try:
        logger.info(f"Loading configuration from: {args.config}")
        config_dict = load_config(args.config)

        # CLI overrides YAML values
        run_metadata = config_dict.setdefault("run_metadata", {})
        if args.input:
            run_metadata["input_path"] = args.input
        if args.output:
            run_metadata["output_path"] = args.output

        config = PipelineConfig.from_dict(config_dict)
        logger.info("Configuration loaded and validated successfully")

        if args.dry_run:
            # Resolving the period in the executor also validates the metadata
            executor = PipelineExecutor(config)
            logger.info("Dry run mode - configuration is valid, exiting")
            logger.info(f"Enabled tasks: {[k for k, v in vars(config.tasks).items() if v]}")
            logger.info(f"Data taking period: {executor.period}")
            return 0

        executor = PipelineExecutor(config)
        final_context = executor.run()

        if not final_context.is_successful:
            logger.error(f"✗ Pipeline failed: {final_context.error_message}")
            return 1

        output_dir = config.output_path or default_output_dir(config.run_name)
        written = executor.save_outputs(final_context, output_dir)
        logger.info(f"✓ Pipeline completed successfully, {len(written)} files in {output_dir}")
        return 0

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
