"""Tests for the Linode lifecycle client and search policy."""

from __future__ import annotations

import pytest

from runner_provisioner.clients.linode import LinodeClient, find_instance
from runner_provisioner.errors import AmbiguousMatchError, NotFoundError, ProviderError
from runner_provisioner.models import VmInstance
from runner_provisioner.testing import FakeProvider, make_sizing

API = "https://api.linode.test/v4"


def _instance_json(instance_id: int, label: str, tags: list[str] | None = None) -> dict:
    return {
        "id": instance_id,
        "label": label,
        "ipv4": [f"198.51.100.{instance_id}", "192.168.0.5"],
        "tags": tags or [],
        "status": "running",
    }


@pytest.fixture
def client(mock_http) -> LinodeClient:
    return LinodeClient(mock_http, "linode-token", api_url=API + "/")


class TestCreateInstance:
    """Tests for instance creation."""

    def test_sends_sizing_and_returns_instance(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(200, _instance_json(7, "ci-runner-7"))

        instance = client.create_instance(make_sizing(), "pw", "ci-runner-7", {"b", "a"})

        assert instance == VmInstance(
            id=7,
            ipv4="198.51.100.7",
            label="ci-runner-7",
            tags=frozenset(),
            status="running",
        )
        _, kwargs = mock_http.request.call_args
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == f"{API}/linode/instances"
        assert kwargs["headers"]["Authorization"] == "Bearer linode-token"
        assert kwargs["json"] == {
            "region": "us-east",
            "type": "g6-standard-1",
            "image": "linux-default",
            "root_pass": "pw",
            "label": "ci-runner-7",
            "tags": ["a", "b"],
        }

    def test_error_carries_status_and_reasons(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(
            400, {"errors": [{"field": "type", "reason": "A valid plan type is required"}]}
        )

        with pytest.raises(ProviderError) as exc_info:
            client.create_instance(make_sizing(machine_type="nope"), "pw", "x", [])

        assert exc_info.value.status_code == 400
        assert "type: A valid plan type is required" in str(exc_info.value)


class TestListInstances:
    """Tests for paginated listing."""

    def test_reads_all_pages(self, client, mock_http, make_response):
        mock_http.request.side_effect = [
            make_response(200, {"data": [_instance_json(1, "a")], "page": 1, "pages": 2}),
            make_response(200, {"data": [_instance_json(2, "b")], "page": 2, "pages": 2}),
        ]

        instances = client.list_instances()

        assert [i.id for i in instances] == [1, 2]
        pages = [c.kwargs["params"]["page"] for c in mock_http.request.call_args_list]
        assert pages == [1, 2]

    def test_single_page(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(200, {"data": [], "page": 1, "pages": 1})

        assert client.list_instances() == []
        assert mock_http.request.call_count == 1

    def test_error_raises(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(401, {"errors": [{"reason": "Invalid Token"}]})

        with pytest.raises(ProviderError, match="Invalid Token"):
            client.list_instances()


class TestDeleteInstance:
    """Tests for deletion."""

    def test_deletes_by_id(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(200, {})

        client.delete_instance(42)

        _, kwargs = mock_http.request.call_args
        assert kwargs["method"] == "DELETE"
        assert kwargs["url"] == f"{API}/linode/instances/42"

    def test_missing_instance_is_not_an_error(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(404, {"errors": [{"reason": "Not found"}]})

        client.delete_instance(42)

    def test_server_error_raises(self, client, mock_http, make_response):
        mock_http.request.return_value = make_response(500, text="oops")

        with pytest.raises(ProviderError) as exc_info:
            client.delete_instance(42)

        assert exc_info.value.method == "DELETE"
        assert "42" in str(exc_info.value)


class TestFindInstance:
    """Tests for the destroy-by-phrase search policy."""

    def test_label_substring_match(self):
        provider = FakeProvider([VmInstance(1, "1.1.1.1", "ci-runner-7-east"), VmInstance(2, "", "web")])
        assert find_instance(provider, "ci-runner-7").id == 1

    def test_exact_label_match(self):
        provider = FakeProvider([VmInstance(1, "", "ci-runner-7")])
        assert find_instance(provider, "ci-runner-7").id == 1

    def test_tag_match(self):
        provider = FakeProvider([VmInstance(3, "", "box", tags=frozenset({"ci-runner-7"}))])
        assert find_instance(provider, "ci-runner-7").id == 3

    def test_no_match(self):
        provider = FakeProvider([VmInstance(1, "", "web")])

        with pytest.raises(NotFoundError) as exc_info:
            find_instance(provider, "ci-runner-7")

        assert exc_info.value.phrase == "ci-runner-7"

    def test_multiple_matches(self):
        provider = FakeProvider(
            [
                VmInstance(1, "", "ci-runner-7"),
                VmInstance(2, "", "other", tags=frozenset({"ci-runner-7"})),
            ]
        )

        with pytest.raises(AmbiguousMatchError) as exc_info:
            find_instance(provider, "ci-runner-7")

        assert sorted(exc_info.value.matches) == [1, 2]
        assert provider.deleted == []
