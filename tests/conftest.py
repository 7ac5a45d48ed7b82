"""
Pytest configuration.

The live merge test reads its playlist URL from the environment.
Locally, add it to your .env file. For CI/CD, configure GitHub Secrets.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

from segment_merger.configs import Settings
from segment_merger.schemas import MediaProbeResult

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture
def get_test_url():
    """
    Factory fixture that returns a function to get test URLs from environment.

    Usage:
        def test_something(get_test_url):
            url = get_test_url("PLAYLIST")
            if url is None:
                pytest.skip("TEST_URL_PLAYLIST not set")
    """

    def _get_url(name: str) -> str | None:
        env_var = f"TEST_URL_{name.upper()}"
        return os.environ.get(env_var)

    return _get_url


@pytest.fixture
def run_settings(tmp_path):
    return Settings(
        temp_dir=str(tmp_path / "temp"),
        output_path=str(tmp_path / "final_merged.mp4"),
        max_concurrent_downloads=2,
    )


@pytest.fixture
def fake_probe():
    """Probe returning canned start times keyed by file name; records every call."""

    class FakeProbe:
        def __init__(self):
            self.start_times = {}
            self.calls = []

        def __call__(self, identifier: str) -> MediaProbeResult:
            name = Path(identifier).name
            self.calls.append(name)
            return MediaProbeResult(start_time=self.start_times.get(name))

    return FakeProbe()
