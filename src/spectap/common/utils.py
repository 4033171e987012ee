"""
SpecTap Common Utilities

Shared loaders and helpers for contract files and request decoding.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


MODE_LIVE = 'live'
MODE_MOCK = 'mock'
MODES = (MODE_LIVE, MODE_MOCK)


def get_mode_from_env(default: str = MODE_MOCK) -> str:
    """
    Retrieve the dispatch mode from the SPECTAP_MODE environment variable.

    Returns:
        'live' or 'mock'; the default when the variable is unset

    Raises:
        ValueError: If the variable holds an unknown mode
    """
    mode = os.environ.get('SPECTAP_MODE', default).strip().lower()
    if mode not in MODES:
        raise ValueError(f"Invalid SPECTAP_MODE '{mode}'. Expected one of: {', '.join(MODES)}")
    return mode


def safe_json_parse(json_string: Any, default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string or bytes to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(await request.body(), default=None)
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


class ContractLoader:
    """
    Loader for contract documents stored as YAML or JSON.

    JSON is a subset of YAML, so every file goes through yaml.safe_load
    unless it has a .json suffix.

    Example:
        loader = ContractLoader("weather.yaml")
        document = loader.load()

        for path in document['paths']:
            print(path)
    """

    def __init__(self, file_path: str):
        """
        Initialize contract loader.

        Args:
            file_path: Path to contract file
        """
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, Any]:
        """
        Load the contract document.

        Returns:
            Contract document as a mapping

        Raises:
            FileNotFoundError: If contract file doesn't exist
            ValueError: If the file cannot be parsed or is not a mapping
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"Contract file not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            try:
                if self.file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                raise ValueError(f"Could not parse contract file {self.file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(
                f"Unexpected contract format in {self.file_path}. "
                f"Expected a mapping, got {type(data).__name__}"
            )
        return data

    @staticmethod
    def load_from_file(file_path: str) -> Dict[str, Any]:
        """
        Convenience method to load a contract in one call.

        Example:
            document = ContractLoader.load_from_file("weather.yaml")
        """
        return ContractLoader(file_path).load()


def lookup_header(headers: Optional[Dict[str, Any]], name: str) -> Any:
    """
    Case-insensitive header lookup.

    Returns:
        Header value, or None when absent
    """
    if not headers:
        return None
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
