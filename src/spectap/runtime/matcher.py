"""
SpecTap Operation Matcher

Finds the contract operation for an incoming request and captures path
template variables.

Features:
- Segment-by-segment template matching
- Literal segments preferred over placeholders
- Declaration order as the final tie-break
- Trailing and repeated separators ignored
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common import PathNormalizer
from ..contract import ContractDocument, OperationDefinition


@dataclass
class MatchResult:
    """Result of matching a request against the contract."""

    matched: bool
    operation: Optional[OperationDefinition] = None
    path_params: Dict[str, str] = field(default_factory=dict)
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'matched': self.matched,
            'operation': self.operation.key if self.operation else None,
            'path_params': dict(self.path_params),
            'reason': self.reason
        }


class OperationMatcher:
    """
    Matches requests to contract operations.

    A literal segment matches only an identical segment, a placeholder
    matches any non-empty segment. When several templates match, the one
    with more literal segments wins, then the one declared first.

    Example:
        matcher = OperationMatcher(document)
        result = matcher.match('GET', '/weather/123')

        if result.matched:
            print(result.operation.handler_id, result.path_params['id'])
    """

    def __init__(self, document: ContractDocument):
        """
        Initialize operation matcher.

        Args:
            document: Loaded contract document
        """
        self.document = document
        self._build_index()

    def _build_index(self):
        """Index operations by method and segment count."""
        self.index: Dict[str, Dict[int, List[OperationDefinition]]] = {}
        for operation in self.document.operations:
            by_length = self.index.setdefault(operation.method, {})
            by_length.setdefault(len(operation.segments), []).append(operation)

        # Best candidates first: more literals, then declaration order
        for by_length in self.index.values():
            for candidates in by_length.values():
                candidates.sort(key=lambda op: (-op.literal_count, op.order))

    def match(self, method: str, path: str) -> MatchResult:
        """
        Find the operation for a request.

        Args:
            method: HTTP method (any case)
            path: Request path, optionally with a query string

        Returns:
            MatchResult; matched is False when no operation applies
        """
        method_upper = method.upper()
        segments = PathNormalizer.split_path(path, decode=True)

        by_length = self.index.get(method_upper)
        if not by_length:
            return MatchResult(matched=False, reason=f"No operations declared for method {method_upper}")

        for operation in by_length.get(len(segments), []):
            captured = self._match_segments(operation, segments)
            if captured is not None:
                return MatchResult(
                    matched=True,
                    operation=operation,
                    path_params=captured,
                    reason=f"Matched {operation.key}"
                )

        return MatchResult(
            matched=False,
            reason=f"No operation matches {method_upper} {PathNormalizer.normalize_path(path)}"
        )

    def _match_segments(self, operation: OperationDefinition, segments: List[str]) -> Optional[Dict[str, str]]:
        """
        Compare request segments with a template.

        Returns:
            Captured placeholder values, or None if the template does not match
        """
        captured = {}
        for template_segment, segment in zip(operation.segments, segments):
            if template_segment.placeholder:
                if not segment:
                    return None
                captured[template_segment.text] = segment
            elif template_segment.text != segment:
                return None
        return captured

    def allowed_methods(self, path: str) -> List[str]:
        """
        List methods whose templates match a path.

        Args:
            path: Request path

        Returns:
            Sorted method names
        """
        segments = PathNormalizer.split_path(path, decode=True)
        methods = []
        for method, by_length in self.index.items():
            if any(self._match_segments(op, segments) is not None for op in by_length.get(len(segments), [])):
                methods.append(method)
        return sorted(methods)
