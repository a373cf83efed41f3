"""Utility helpers for the scanner."""

from .fileio import parse_json_document, read_text_file, read_yaml_file

__all__ = [
    "parse_json_document",
    "read_text_file",
    "read_yaml_file",
]
