"""
SpecTap Violations

Violation records produced by parameter resolution and validation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple, Union


class ViolationKind(str, Enum):
    """Constraint kinds a request can violate."""

    REQUIRED = 'Required'
    TYPE_MISMATCH = 'TypeMismatch'
    ENUM_MISMATCH = 'EnumMismatch'
    RANGE_VIOLATION = 'RangeViolation'
    INVALID_PARAMETER_VALUE = 'InvalidParameterValue'
    ADDITIONAL_PROPERTY = 'AdditionalProperty'


PathStep = Union[str, int]


def format_path(path: Tuple[PathStep, ...]) -> str:
    """
    Render a schema path: ('body', 'items', 0, 'name') -> 'body.items[0].name'.
    """
    rendered = ''
    for step in path:
        if isinstance(step, int):
            rendered += f'[{step}]'
        elif rendered:
            rendered += f'.{step}'
        else:
            rendered = str(step)
    return rendered


@dataclass(frozen=True)
class ValidationError:
    """A single constraint violation."""

    path: Tuple[PathStep, ...]
    kind: ViolationKind
    message: str

    @property
    def parameter(self) -> str:
        """Name of the parameter the violation belongs to."""
        return str(self.path[0]) if self.path else ''

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'path': format_path(self.path),
            'kind': self.kind.value,
            'message': self.message
        }
