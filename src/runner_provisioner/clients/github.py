"""GitHub REST client for self-hosted runner registration.

Covers the three calls the provisioning workflow needs: minting a
registration token, finding a runner by label, and deleting a runner.
"""

from __future__ import annotations

import logging

import httpx

from runner_provisioner.clients.http import HTTPResponse, bearer_headers, request
from runner_provisioner.errors import ProvisionError, RegistryError
from runner_provisioner.models import RegistrationToken, RunnerRegistration, RunnerRegistry

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
PER_PAGE = 100


class GitHubRunnerRegistry:
    """Runner registry client backed by the GitHub Actions REST API."""

    def __init__(
        self,
        http: httpx.Client,
        token: str,
        *,
        api_url: str = DEFAULT_GITHUB_API_URL,
    ) -> None:
        self.http = http
        self.api_url = api_url.rstrip("/")
        self._headers = bearer_headers(
            token,
            Accept="application/vnd.github+json",
            **{"X-GitHub-Api-Version": GITHUB_API_VERSION},
        )

    def mint_registration_token(self, owner: str, repo: str) -> RegistrationToken:
        """Request a short-lived registration token for a repository.

        Raises:
            RegistryError: On a non-2xx response.
        """
        url = self._runners_url(owner, repo) + "/registration-token"
        logger.info("Requesting GitHub registration token...")
        response = request(self.http, "POST", url, headers=self._headers)
        if not response.ok:
            raise _registry_error(
                f"Failed to mint registration token for {owner}/{repo}", "POST", url, response
            )

        data = response.json if isinstance(response.json, dict) else {}
        token = data.get("token")
        if not token:
            raise RegistryError(
                "Registration token missing from response",
                status_code=response.status_code,
                url=url,
                method="POST",
            )
        logger.info(f"GitHub registration token received (expires: {data.get('expires_at')})")
        return RegistrationToken(token=token, expires_at=data.get("expires_at"))

    def list_runners(self, owner: str, repo: str) -> list[RunnerRegistration]:
        """List all runners registered to a repository.

        Raises:
            RegistryError: On a non-2xx response.
        """
        url = self._runners_url(owner, repo)
        runners: list[RunnerRegistration] = []
        page = 1
        while True:
            response = request(
                self.http,
                "GET",
                url,
                headers=self._headers,
                params={"per_page": PER_PAGE, "page": page},
            )
            if not response.ok:
                raise _registry_error(f"Failed to list runners for {owner}/{repo}", "GET", url, response)

            data = response.json if isinstance(response.json, dict) else {}
            batch = data.get("runners", [])
            runners.extend(RunnerRegistration.from_api(item) for item in batch)
            if len(batch) < PER_PAGE:
                break
            page += 1
        return runners

    def find_runner_by_label(
        self, owner: str, repo: str, label: str
    ) -> RunnerRegistration | None:
        """Find the first runner carrying a label.

        Returns:
            The runner, or None if no runner has the label.
        """
        logger.info(f"Fetching runners for repo {owner}/{repo}")
        for runner in self.list_runners(owner, repo):
            if label in runner.labels:
                return runner
        return None

    def delete_runner(self, owner: str, repo: str, runner_id: int) -> bool:
        """Delete a runner registration.

        Status codes are never raised: a registration outliving its VM only
        lingers as an offline runner until GitHub prunes it.

        Returns:
            True if the runner was removed (204), False otherwise.
        """
        url = f"{self._runners_url(owner, repo)}/{runner_id}"
        response = request(self.http, "DELETE", url, headers=self._headers)
        if response.status_code == 204:
            logger.info(f"Runner {runner_id} unregistered successfully.")
            return True
        if response.status_code == 422:
            logger.error(
                f"Failed to unregister runner {runner_id}: 422 - {_message(response)} "
                "(runner already removed or busy)"
            )
            return False
        logger.error(
            f"Failed to unregister runner {runner_id}: {response.status_code} - {_message(response)}"
        )
        return False

    def _runners_url(self, owner: str, repo: str) -> str:
        return f"{self.api_url}/repos/{owner}/{repo}/actions/runners"


def unregister_runner(registry: RunnerRegistry, owner: str, repo: str, label: str) -> bool:
    """Best-effort removal of the runner carrying a label.

    Every failure is logged and swallowed; VM deletion must not depend on it.

    Returns:
        True if a runner was found and deleted.
    """
    try:
        runner = registry.find_runner_by_label(owner, repo, label)
    except ProvisionError as e:
        logger.warning(f"Failed to look up runner with label {label}: {e}")
        return False

    if runner is None:
        logger.info(f"Runner with label {label} not found.")
        return False

    logger.info(f"Found runner with label {label} (id={runner.id}), unregistering...")
    try:
        removed = registry.delete_runner(owner, repo, runner.id)
    except ProvisionError as e:
        logger.warning(f"Failed to unregister runner {runner.id}: {e}")
        return False

    if not removed:
        logger.warning(f"Runner with label {label} is still registered; continuing")
    return removed


def _message(response: HTTPResponse) -> str:
    if isinstance(response.json, dict) and response.json.get("message"):
        return str(response.json["message"])
    return response.body[:200]


def _registry_error(message: str, method: str, url: str, response: HTTPResponse) -> RegistryError:
    return RegistryError(
        f"{message}: {response.status_code} - {_message(response)}",
        status_code=response.status_code,
        url=url,
        method=method,
    )
