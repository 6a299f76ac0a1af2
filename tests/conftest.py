"""Test configuration for pytest."""

import shutil
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from youcli.config import YouConfig
from youcli.llm_handler import LLMHandler, LLMResponse

LLM_VARIABLES = [
    "DONE_OPENAI_API_BASE",
    "DONE_OPENAI_API_KEY",
    "DONE_OPENAI_MODEL",
    "YOU_OPENAI_API_BASE",
    "YOU_OPENAI_API_KEY",
    "YOU_OPENAI_MODEL",
]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def sample_config(temp_dir):
    """Create a sample configuration for testing."""
    return YouConfig(
        api_base="http://localhost:8080/v1",
        api_key="test-key-123",
        model="test-model",
        home_dir=temp_dir / "home",
        command_timeout=30,
        llm_timeout=5,
        max_llm_attempts=5,
    )


@pytest.fixture
def mock_provider():
    """Create a mock LLM provider; set ``generate_response.side_effect`` per test."""
    provider = MagicMock()
    provider.get_model_name.return_value = "test-model"
    provider.generate_response = AsyncMock(
        return_value=LLMResponse(content='{"question": "What?"}', model="test-model")
    )
    return provider


@pytest.fixture
def llm(sample_config, mock_provider):
    """A real gateway wired to the mock provider."""
    return LLMHandler(sample_config, provider=mock_provider)


@pytest.fixture
def information():
    info = MagicMock()
    info.render.return_value = "Environment:\nSystem: TestOS\n"
    return info


@pytest.fixture(autouse=True)
def setup_test_environment(temp_dir, monkeypatch):
    """Isolate the home directory and set the LLM environment variables."""
    for name in LLM_VARIABLES:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setenv("HOME", str(temp_dir))
    monkeypatch.setenv("USERPROFILE", str(temp_dir))
    monkeypatch.setenv("YOU_OPENAI_API_BASE", "http://localhost:8080/v1")
    monkeypatch.setenv("YOU_OPENAI_API_KEY", "test-key-env")
    monkeypatch.setenv("YOU_OPENAI_MODEL", "test-model-env")

    yield
