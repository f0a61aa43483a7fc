"""
OutputWriter service - Writes the produced tables as ROOT trees.
"""

import logging
import os

import numpy as np
import uproot

from domain.tables import OutputTable


class OutputWriter:
    """Writes one output file per input chunk, one tree per table."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.logger = logging.getLogger(self.__class__.__name__)

    def output_path(self, source: str) -> str:
        """Output file for an input file, named after it."""
        base_name = os.path.splitext(os.path.basename(source))[0]
        return os.path.join(self.output_dir, f"{base_name}_tofpid.root")

    def write(self, source: str, tables: dict[str, OutputTable]) -> str:
        """
        Write the tables of one chunk.

        Args:
            source: Input file the tables were produced from
            tables: Mapping of table name to OutputTable

        Returns:
            Path of the written file
        """
        os.makedirs(self.output_dir, exist_ok=True)
        file_path = self.output_path(source)

        try:
            with uproot.recreate(file_path) as root_file:
                for name, table in tables.items():
                    root_file[name] = {
                        column: np.asarray(values)
                        for column, values in table.columns.items()
                    }
        except Exception as e:
            self.logger.error(f"Failed to save tables to {file_path}: {e}")
            raise

        self.logger.info(f"Wrote {len(tables)} tables to {file_path}")
        return file_path
