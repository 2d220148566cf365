"""Dependency wiring for a provisioning invocation."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass

import httpx

from runner_provisioner.clients.github import DEFAULT_GITHUB_API_URL, GitHubRunnerRegistry
from runner_provisioner.clients.linode import DEFAULT_LINODE_API_URL, LinodeClient
from runner_provisioner.clients.ssh import ParamikoShell
from runner_provisioner.config import ProvisionRequest
from runner_provisioner.models import RemoteShell, RunnerRegistry, VmProvider

logger = logging.getLogger(__name__)

USER_AGENT = "ci-runner-provisioner"


@dataclass(frozen=True)
class Deps:
    """External collaborators of the workflow.

    Tests build this with the fakes from runner_provisioner.testing.

    Attributes:
        provider: Cloud VM lifecycle client.
        registry: CI runner registry client.
        shell: Remote command channel.
    """

    provider: VmProvider
    registry: RunnerRegistry
    shell: RemoteShell


@contextmanager
def build_deps(
    request: ProvisionRequest,
    env: Mapping[str, str],
    *,
    timeout: float = 30.0,
) -> Iterator[Deps]:
    """Build the concrete clients for a request.

    Credentials come from the request; API base URLs may be overridden with
    LINODE_API_URL and GITHUB_API_URL. The HTTP client is closed on exit.

    Example:
        with build_deps(request, os.environ) as deps:
            Provisioner(deps.provider, deps.registry, deps.shell).run(request)
    """
    http_client = httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )

    try:
        yield Deps(
            provider=LinodeClient(
                http_client,
                request.linode_token,
                api_url=env.get("LINODE_API_URL", DEFAULT_LINODE_API_URL),
            ),
            registry=GitHubRunnerRegistry(
                http_client,
                request.github_token,
                api_url=env.get("GITHUB_API_URL", DEFAULT_GITHUB_API_URL),
            ),
            shell=ParamikoShell(),
        )
    finally:
        http_client.close()
