"""Pytest fixtures for ci-runner-provisioner tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from runner_provisioner.config import ProvisionRequest, resolve_request
from runner_provisioner.testing import FakeProvider, FakeRegistry, FakeShell, FakeSleep


def _make_response(
    status_code: int = 200,
    json_data: Any = None,
    *,
    text: str | None = None,
) -> MagicMock:
    """Build a fake httpx.Response as returned by client.request()."""
    response = MagicMock()
    response.status_code = status_code
    if json_data is not None:
        response.headers = {"content-type": "application/json; charset=utf-8"}
        response.json.return_value = json_data
        response.text = text if text is not None else str(json_data)
    else:
        response.headers = {}
        response.text = text or ""
    response.elapsed = MagicMock(total_seconds=lambda: 0.1)
    return response


@pytest.fixture
def mock_http() -> MagicMock:
    """An httpx.Client mock; set request.return_value / side_effect per test."""
    client = MagicMock(spec=httpx.Client)
    client.timeout = MagicMock(connect=30.0)
    return client


@pytest.fixture
def create_bag() -> dict[str, str]:
    """Valid inputs for a create invocation."""
    return {
        "action": "create",
        "github_token": "ghp_test",
        "linode_token": "linode_test",
        "runner_label": "ci-runner-7",
        "root_password": "s3cret-Pass!",
        "machine_type": "g6-standard-1",
        "image": "linux-default",
        "tags": "ci, ephemeral",
        "organization": "acme",
        "repo_name": "widgets",
    }


@pytest.fixture
def destroy_bag() -> dict[str, str]:
    """Valid inputs for a destroy-by-phrase invocation."""
    return {
        "action": "destroy",
        "github_token": "ghp_test",
        "linode_token": "linode_test",
        "runner_label": "ci-runner-7",
        "search_phrase": "ci-runner-7",
        "organization": "acme",
        "repo_name": "widgets",
    }


@pytest.fixture
def create_request(create_bag: dict[str, str]) -> ProvisionRequest:
    return resolve_request(create_bag)


@pytest.fixture
def destroy_request(destroy_bag: dict[str, str]) -> ProvisionRequest:
    return resolve_request(destroy_bag)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def make_response():
    """Factory for fake httpx responses (see _make_response)."""
    return _make_response
