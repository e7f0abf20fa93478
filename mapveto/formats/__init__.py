"""
Formats - Veto scripts and the map catalog sessions are built from.

This module contains:
- The sequence library (bo1/bo3/bo5, faceit and wingman variants)
- Custom sequence parsing
- The process-wide map catalog
"""

from .sequences import (
    CUSTOM_FORMAT,
    SEQUENCES,
    UnknownFormatError,
    get_sequence,
    list_formats,
    parse_steps,
)
from .maps import DEFAULT_MAPS, WINGMAN_MAPS, MapCatalog, MapDefinition

__all__ = [
    "CUSTOM_FORMAT",
    "SEQUENCES",
    "UnknownFormatError",
    "get_sequence",
    "list_formats",
    "parse_steps",
    "DEFAULT_MAPS",
    "WINGMAN_MAPS",
    "MapCatalog",
    "MapDefinition",
]
