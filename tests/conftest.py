"""
Shared fixtures for SpecTap tests.
"""

from pathlib import Path

import pytest

from spectap.contract import load_contract


EXAMPLES_DIR = Path(__file__).parent.parent / 'examples'


@pytest.fixture
def weather_contract_path():
    """Path of the bundled weather contract."""
    return str(EXAMPLES_DIR / 'weather.yaml')


@pytest.fixture
def weather_document(weather_contract_path):
    """Loaded weather contract (basePath /api)."""
    return load_contract(weather_contract_path)
