"""Shared fixtures: the set-class catalog is built once per test session."""

import pytest

from pitchanalyzer.set_catalog import SetClassCatalog, build_catalog


@pytest.fixture(scope="session")
def catalog() -> SetClassCatalog:
    return build_catalog()
