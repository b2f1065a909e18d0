"""Utilities package initialization."""

from .logger import setup_logger, get_logger, set_verbose
from .file_utils import (
    save_json,
    load_json,
    ensure_directory,
    outcome_filename
)

__all__ = [
    'setup_logger',
    'get_logger',
    'set_verbose',
    'save_json',
    'load_json',
    'ensure_directory',
    'outcome_filename'
]
