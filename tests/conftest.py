import os
import sys

import pytest

LAMBDA_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "token-site-agent-repo", "tools", "site-content-generator", "lambda",
)
sys.path.insert(0, LAMBDA_DIR)

import groq_client  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_groq_state(monkeypatch):
    """Fresh credential cache and a known API key for every test."""
    monkeypatch.setitem(groq_client._KEY_CACHE, "api_key", None)
    monkeypatch.setattr(groq_client, "_CLIENTS", {})
    monkeypatch.setenv("GROQ_API_KEY", "test-key")
    monkeypatch.delenv("GROQ_SECRET_ARN", raising=False)
    monkeypatch.delenv("GROQ_SECRET_ID", raising=False)
