"""File utilities for Feed Harvester."""

import json
from datetime import date
from pathlib import Path
from typing import Any, Optional
from utils.logger import get_logger

logger = get_logger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return str(value)


def save_json(data: Any, output_path: Path, indent: int = 2) -> None:
    """
    Save data to JSON file.

    Dates are written as ISO strings and objects with a ``to_dict`` method
    (crawl outcomes, items) through that method.

    Args:
        data: Data to save
        output_path: Path to output file
        indent: JSON indentation level
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=_json_default)

    logger.info(f"Saved JSON data to {output_path}")


def load_json(input_path: Path) -> Optional[Any]:
    """
    Load data from JSON file.

    Args:
        input_path: Path to input file

    Returns:
        Parsed JSON data, or None if the file does not exist
    """
    if not input_path.exists():
        logger.warning(f"File not found: {input_path}")
        return None

    with open(input_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    logger.info(f"Loaded JSON data from {input_path}")
    return data


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The path (for chaining)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def outcome_filename(site: str, topic: str, cutoff: date) -> str:
    """Default output file name of a crawl, e.g. ``dr_politik_since_2023-11-20.json``."""
    return f"{site}_{topic}_since_{cutoff.isoformat()}.json"
