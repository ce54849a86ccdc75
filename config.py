"""Configuration and constants for image optimization."""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union


LOSSY_EXTS = (".jpg", ".jpeg")
LOSSLESS_EXTS = (".png", ".bmp", ".gif", ".pnm", ".tiff")
SUPPORTED_EXTS = LOSSY_EXTS + LOSSLESS_EXTS

# Proposed replacements live next to their source until committed.
TEMP_SUFFIX = ".optimized"

DEFAULT_JPEG_QUALITIES: List[int] = [65, 75, 80, 85, 90]

DEFAULT_SETTINGS: Dict[str, Any] = {
    "working_folder": None,
    "optipng_path": None,
    "min_jpeg_similarity": 96.0,
    "quality_check_width": 500,
    "meaningful_file_size_change": 2048,
    "only_top_directory": False,
    "override_files": True,
    "delete_unoptimizable": True,
    "tried_jpeg_qualities": DEFAULT_JPEG_QUALITIES,
    "worker_concurrency": 8,
    "tool_timeout_seconds": 45,
}


def parse_qualities(value: Union[str, Sequence[Any], None]) -> List[int]:
    """Parse a quality list such as "65, 75;80 85" or [65, 75].

    Entries that are not integers are ignored.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts: Sequence[Any] = re.split(r"[,; ]", value)
    else:
        parts = value
    qualities: List[int] = []
    for part in parts:
        try:
            qualities.append(int(str(part).strip()))
        except ValueError:
            continue
    return qualities


def load_settings(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load settings from a JSON config file merged over the defaults.

    Args:
        config_file: Optional path to a JSON file with any subset of the keys
            in DEFAULT_SETTINGS

    Returns:
        Dictionary with every key of DEFAULT_SETTINGS present
    """
    result = dict(DEFAULT_SETTINGS)
    if config_file is None:
        return result
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with config_file.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Invalid config file; expected a JSON object.")

    unknown = sorted(set(data) - set(DEFAULT_SETTINGS))
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")

    result.update(data)
    result["tried_jpeg_qualities"] = parse_qualities(result["tried_jpeg_qualities"])
    return result
