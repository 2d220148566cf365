"""Linode API v4 client for the VM lifecycle.

Wraps instance create/list/delete and implements the destroy-by-phrase
search policy on top of the listing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import httpx

from runner_provisioner.clients.http import HTTPResponse, bearer_headers, request
from runner_provisioner.errors import AmbiguousMatchError, NotFoundError, ProviderError
from runner_provisioner.models import VmInstance, VmProvider

if TYPE_CHECKING:
    from runner_provisioner.config import MachineSizing

logger = logging.getLogger(__name__)

DEFAULT_LINODE_API_URL = "https://api.linode.com/v4"
PAGE_SIZE = 100


class LinodeClient:
    """VM lifecycle client backed by the Linode REST API."""

    def __init__(
        self,
        http: httpx.Client,
        token: str,
        *,
        api_url: str = DEFAULT_LINODE_API_URL,
    ) -> None:
        self.http = http
        self.api_url = api_url.rstrip("/")
        self._headers = bearer_headers(token, Accept="application/json")

    def create_instance(
        self,
        sizing: MachineSizing,
        root_password: str,
        label: str,
        tags: Iterable[str],
    ) -> VmInstance:
        """Create an instance and return it as reported by the API.

        Raises:
            ProviderError: If the API rejects the request.
        """
        body = {
            "region": sizing.region,
            "type": sizing.machine_type,
            "image": sizing.image,
            "root_pass": root_password,
            "label": label,
            "tags": sorted(tags),
        }
        logger.info(
            f"Creating Linode instance label={label} type={sizing.machine_type} "
            f"image={sizing.image} region={sizing.region}"
        )
        response = self._call("POST", "/linode/instances", json_body=body)
        if not response.ok:
            raise self._error("Failed to create Linode instance", "POST", "/linode/instances", response)

        instance = VmInstance.from_api(response.json or {})
        logger.info(f"Linode instance created with ID {instance.id} and IP {instance.ipv4}")
        return instance

    def list_instances(self) -> list[VmInstance]:
        """List every instance visible to the token, across all pages."""
        instances: list[VmInstance] = []
        page = 1
        while True:
            response = self._call(
                "GET", "/linode/instances", params={"page": page, "page_size": PAGE_SIZE}
            )
            if not response.ok:
                raise self._error("Failed to list Linode instances", "GET", "/linode/instances", response)

            data = response.json if isinstance(response.json, dict) else {}
            instances.extend(VmInstance.from_api(item) for item in data.get("data", []))
            if page >= int(data.get("pages", 1)):
                break
            page += 1

        logger.debug(f"Listed {len(instances)} Linode instance(s)")
        return instances

    def delete_instance(self, instance_id: int) -> None:
        """Delete an instance.

        An instance that no longer exists is treated as already deleted.

        Raises:
            ProviderError: If the API rejects the request.
        """
        path = f"/linode/instances/{instance_id}"
        logger.info(f"Deleting Linode instance {instance_id}...")
        response = self._call("DELETE", path)
        if response.status_code == 404:
            logger.warning(f"Linode instance {instance_id} not found; assuming already deleted")
            return
        if not response.ok:
            raise self._error(f"Failed to delete Linode instance {instance_id}", "DELETE", path, response)
        logger.info(f"Linode machine {instance_id} destroyed successfully.")

    def _call(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> HTTPResponse:
        return request(
            self.http,
            method,
            f"{self.api_url}{path}",
            headers=self._headers,
            json_body=json_body,
            params=params,
        )

    def _error(self, message: str, method: str, path: str, response: HTTPResponse) -> ProviderError:
        reasons = _error_reasons(response)
        detail = f"{message}: {response.status_code}"
        if reasons:
            detail = f"{detail} - {reasons}"
        return ProviderError(
            detail,
            status_code=response.status_code,
            url=f"{self.api_url}{path}",
            method=method,
        )


def _error_reasons(response: HTTPResponse) -> str:
    """Join the reasons of a Linode error payload ({"errors": [{"reason", "field"}]})."""
    if not isinstance(response.json, dict):
        return response.body[:200]
    reasons = []
    for err in response.json.get("errors") or []:
        reason = err.get("reason", "")
        if err.get("field"):
            reason = f"{err['field']}: {reason}"
        reasons.append(reason)
    return "; ".join(reasons)


def find_instance(provider: VmProvider, phrase: str) -> VmInstance:
    """Resolve exactly one instance matching a search phrase.

    Raises:
        NotFoundError: If nothing matches.
        AmbiguousMatchError: If more than one instance matches.
    """
    logger.info(f'Searching for Linode instances matching phrase "{phrase}"...')
    matches = [instance for instance in provider.list_instances() if instance.matches(phrase)]

    if not matches:
        raise NotFoundError(
            f"No Linode instances found matching the search phrase: {phrase}", phrase=phrase
        )
    if len(matches) > 1:
        raise AmbiguousMatchError(
            f"Multiple Linode instances found matching the search phrase: {phrase}",
            phrase=phrase,
            matches=[m.id for m in matches],
        )

    logger.info(f"Found single matching instance with ID {matches[0].id}")
    return matches[0]
