"""Tests for the GitHub runner registry client."""

from __future__ import annotations

import httpx
import pytest

from runner_provisioner.clients.github import GitHubRunnerRegistry, unregister_runner
from runner_provisioner.errors import RegistryError
from runner_provisioner.models import RunnerRegistration
from runner_provisioner.testing import FakeRegistry

API = "https://api.github.test"
RUNNERS_URL = f"{API}/repos/acme/widgets/actions/runners"


def _runner_json(runner_id: int, *labels: str) -> dict:
    return {
        "id": runner_id,
        "name": f"runner-{runner_id}",
        "os": "linux",
        "status": "online",
        "labels": [{"id": i, "name": name, "type": "custom"} for i, name in enumerate(labels)],
    }


@pytest.fixture
def client(mock_http) -> GitHubRunnerRegistry:
    return GitHubRunnerRegistry(mock_http, "ghp_test", api_url=API)


class TestMintRegistrationToken:
    """Tests for registration token minting."""

    def test_returns_token(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(
            201, {"token": "LLBF3JGZDX3P5PMEXLND6TS6FCWO6", "expires_at": "2026-10-19T13:00:00Z"}
        )

        token = client.mint_registration_token("acme", "widgets")

        assert token.token == "LLBF3JGZDX3P5PMEXLND6TS6FCWO6"
        assert token.expires_at == "2026-10-19T13:00:00Z"
        assert "LLBF3" not in repr(token)
        _, kwargs = mock_http.request.call_args
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == f"{RUNNERS_URL}/registration-token"
        assert kwargs["headers"]["Authorization"] == "Bearer ghp_test"
        assert kwargs["headers"]["Accept"] == "application/vnd.github+json"

    def test_non_2xx_raises_registry_error(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(403, {"message": "Resource not accessible"})

        with pytest.raises(RegistryError) as exc_info:
            client.mint_registration_token("acme", "widgets")

        assert exc_info.value.status_code == 403
        assert "Resource not accessible" in str(exc_info.value)

    def test_missing_token_raises(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(201, {"expires_at": "soon"})

        with pytest.raises(RegistryError, match="missing"):
            client.mint_registration_token("acme", "widgets")


class TestFindRunnerByLabel:
    """Tests for runner lookup."""

    def test_finds_runner_with_label(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(
            200,
            {
                "total_count": 2,
                "runners": [
                    _runner_json(1, "self-hosted", "linux"),
                    _runner_json(2, "self-hosted", "ci-runner-7"),
                ],
            },
        )

        runner = client.find_runner_by_label("acme", "widgets", "ci-runner-7")

        assert runner == RunnerRegistration(
            id=2,
            name="runner-2",
            labels=frozenset({"self-hosted", "ci-runner-7"}),
            status="online",
        )

    def test_absent_label_returns_none(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(200, {"total_count": 0, "runners": []})

        assert client.find_runner_by_label("acme", "widgets", "ci-runner-7") is None

    def test_paginates_until_short_page(self, client, mock_http, make_response):
        full_page = [_runner_json(i, "other") for i in range(100)]
        mock_http.request.side_effect = [
            make_response(200, {"runners": full_page}),
            make_response(200, {"runners": [_runner_json(500, "ci-runner-7")]}),
        ]

        runner = client.find_runner_by_label("acme", "widgets", "ci-runner-7")

        assert runner is not None
        assert runner.id == 500
        assert mock_http.request.call_count == 2

    def test_list_error_raises(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(404, {"message": "Not Found"})

        with pytest.raises(RegistryError):
            client.find_runner_by_label("acme", "widgets", "ci-runner-7")


class TestDeleteRunner:
    """Tests for runner deletion."""

    def test_no_content_is_success(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(204)

        assert client.delete_runner("acme", "widgets", 9) is True
        _, kwargs = mock_http.request.call_args
        assert kwargs["method"] == "DELETE"
        assert kwargs["url"] == f"{RUNNERS_URL}/9"

    def test_422_is_reported_not_raised(self, client, mock_http, make_response, caplog):
        mock_http.request.return_value = make_response(422, {"message": "Bad request - Runner is busy"})

        assert client.delete_runner("acme", "widgets", 9) is False
        assert "already removed or busy" in caplog.text

    def test_other_status_is_reported_not_raised(self, client, mock_http, make_response, caplog):
        mock_http.request.return_value = make_response(500, text="server error")

        assert client.delete_runner("acme", "widgets", 9) is False
        assert "500" in caplog.text


class TestUnregisterRunner:
    """Tests for the best-effort unregister helper."""

    def test_deletes_matching_runner(self):
        registry = FakeRegistry([RunnerRegistration(5, "r", frozenset({"ci-runner-7"}))])

        assert unregister_runner(registry, "acme", "widgets", "ci-runner-7") is True
        assert registry.deleted == [5]

    def test_no_runner_is_noop(self):
        registry = FakeRegistry()

        assert unregister_runner(registry, "acme", "widgets", "ci-runner-7") is False
        assert registry.deleted == []

    def test_lookup_failure_is_swallowed(self):
        registry = FakeRegistry(fail_find=RegistryError("boom", status_code=500))

        assert unregister_runner(registry, "acme", "widgets", "ci-runner-7") is False

    def test_delete_failure_is_swallowed(self):
        registry = FakeRegistry(
            [RunnerRegistration(5, "r", frozenset({"ci-runner-7"}))], delete_status=422
        )

        assert unregister_runner(registry, "acme", "widgets", "ci-runner-7") is False
        assert registry.deleted == [5]

    def test_transport_failure_is_swallowed(self, mock_http):
        mock_http.request.side_effect = httpx.ConnectError("refused")
        client = GitHubRunnerRegistry(mock_http, "ghp_test", api_url=API)

        assert unregister_runner(client, "acme", "widgets", "ci-runner-7") is False
