"""
Parsing services.

Services responsible for reading the input ROOT files and writing the
produced tables.
"""

from .file_parser import FileParser, list_input_files
from .output_writer import OutputWriter

__all__ = [
    "FileParser",
    "list_input_files",
    "OutputWriter",
]
