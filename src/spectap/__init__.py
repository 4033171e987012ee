"""
SpecTap

Contract-driven request matching, validation and mocking for HTTP APIs.
"""

__version__ = '1.0.0'
