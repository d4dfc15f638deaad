"""Shared test fixtures."""

import pytest
from fastapi.testclient import TestClient

from task_extractor.app import app
from task_extractor.config import get_settings
from task_extractor.slack.client import reset_client as reset_slack_client
from task_extractor.workflow.client import reset_client as reset_workflow_client


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Fresh settings and singletons per test, never reading a developer .env."""
    for name in ("SLACK_BOT_TOKEN", "WORKFLOW_API_KEY", "WORKFLOW_ID", "WORKFLOW_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    reset_slack_client()
    reset_workflow_client()
    yield
    get_settings.cache_clear()
    reset_slack_client()
    reset_workflow_client()


@pytest.fixture
def client() -> TestClient:
    """Create a TestClient for the FastAPI app (lifespan not started)."""
    return TestClient(app)
