# tests/conftest.py
"""
Shared pytest configuration and fixtures for the dataweave test suite.
"""

import logging

import pytest

from dataweave.conventions import ProjectLayout
from dataweave.scaffold import ProjectScaffolder

logging.basicConfig(level=logging.INFO)


@pytest.fixture
def layout(tmp_path):
    """Layout of an empty project rooted at tmp_path"""
    return ProjectLayout.for_root(tmp_path)


@pytest.fixture
def project_dir(tmp_path):
    """A freshly scaffolded project"""
    return ProjectScaffolder('test_project', tmp_path / 'test_project').scaffold()


@pytest.fixture
def project_layout(project_dir):
    return ProjectLayout.for_root(project_dir)


def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line('markers', 'unit: Unit tests (fast, no external dependencies)')
    config.addinivalue_line('markers', 'integration: Integration tests (write project trees to tmp_path)')
