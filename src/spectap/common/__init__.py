"""
SpecTap Common Utilities

Shared utilities and helpers used across SpecTap modules.
"""

from .utils import (
    get_mode_from_env,
    safe_json_parse,
    lookup_header,
    ContractLoader,
    MODE_LIVE,
    MODE_MOCK,
    MODES
)
from .url_utils import PathNormalizer

__all__ = [
    'get_mode_from_env',
    'safe_json_parse',
    'lookup_header',
    'ContractLoader',
    'MODE_LIVE',
    'MODE_MOCK',
    'MODES',
    'PathNormalizer'
]
