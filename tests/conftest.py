"""Test configuration and fixtures for the entire test suite."""

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

from src.connector.logging_config import setup_logging


# Add the project root to the Python path
@pytest.fixture(scope="session", autouse=True)
def setup_path() -> None:
    """Add the project root to the Python path."""
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

    # Load environment variables from .env file
    load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def connector_logging() -> None:
    """Route connector logs through the rich handler at DEBUG."""
    setup_logging("DEBUG")
