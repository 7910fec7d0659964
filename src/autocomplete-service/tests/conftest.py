"""Pytest configuration and shared fixtures"""
import os
import sys
import pytest

# Add the service root directory to Python path
service_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, service_root)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Setup test environment variables"""
    os.environ["LOG_LEVEL"] = "DEBUG"
    os.environ["OLLAMA_BASE_URL"] = "http://ollama.test"
    yield


@pytest.fixture
def settings_path(tmp_path):
    """Settings file location inside a per-test temp dir"""
    return str(tmp_path / "config" / "autocomplete-settings.json")


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "network: mark test as requiring a running Ollama server"
    )
