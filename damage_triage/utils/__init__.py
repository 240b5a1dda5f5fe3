"""Utility modules for configuration, logging, errors and AWS integration."""

from .json_extraction import extract_json_object

__all__ = [
    'extract_json_object'
]
