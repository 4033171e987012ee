"""
SpecTap URL Utilities

Shared path parsing and normalization used by the registry and matcher.
"""

from urllib.parse import urlparse, unquote
from typing import List


class PathNormalizer:
    """Handles request and template path normalization."""

    @staticmethod
    def strip_query(path: str) -> str:
        """
        Remove query string and fragment from a request path.

        Args:
            path: Path, optionally followed by ?query or #fragment

        Returns:
            Path component only
        """
        return urlparse(path).path if ('?' in path or '#' in path) else path

    @staticmethod
    def split_path(path: str, decode: bool = False) -> List[str]:
        """
        Split a path into segments.

        Leading, trailing and repeated separators are ignored, so '/a/b/',
        '/a//b' and 'a/b' all give ['a', 'b'] and '/' gives [].

        Args:
            path: Path to split
            decode: Percent-decode each segment after splitting

        Returns:
            List of non-empty segments
        """
        segments = [part for part in PathNormalizer.strip_query(path).split('/') if part]
        if decode:
            segments = [unquote(part) for part in segments]
        return segments

    @staticmethod
    def normalize_path(path: str) -> str:
        """
        Normalize a path for comparison.

        Args:
            path: Path to normalize

        Returns:
            '/'-joined segments with a single leading separator
        """
        return '/' + '/'.join(PathNormalizer.split_path(path))

    @staticmethod
    def base_path_from_url(url: str) -> str:
        """
        Extract a base path from a server URL.

        Args:
            url: Absolute or relative server URL (e.g. https://api.example.com/v1)

        Returns:
            Normalized path ('' for the root or for templated server URLs)
        """
        path = urlparse(url).path if url else ''
        if '{' in path:
            return ''
        normalized = PathNormalizer.normalize_path(path)
        return '' if normalized == '/' else normalized
