import sys
from pathlib import Path

import pytest

# Ensure package path for local src
SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from agent_committee.credentials import Credentials, reset_credentials


@pytest.fixture(autouse=True)
def _isolated_credentials(monkeypatch):
    for var in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    reset_credentials()
    yield
    reset_credentials()


@pytest.fixture
def openai_only():
    return Credentials(keys={"openai": "sk-test-openai"})
