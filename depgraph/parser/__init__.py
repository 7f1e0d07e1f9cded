"""Manifest parser: go.mod text to a structured record."""

from depgraph.parser.models import ManifestRecord, ModuleVersion, Replacement, Requirement
from depgraph.parser.modfile import parse_go_mod, parse_go_mod_file

__all__ = [
    "ManifestRecord",
    "ModuleVersion",
    "Replacement",
    "Requirement",
    "parse_go_mod",
    "parse_go_mod_file",
]
