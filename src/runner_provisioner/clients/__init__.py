"""API and transport clients for ci-runner-provisioner.

These implement the capability protocols in runner_provisioner.models
against Linode, GitHub, and SSH.
"""

from runner_provisioner.clients.github import GitHubRunnerRegistry, unregister_runner
from runner_provisioner.clients.http import HTTPResponse, request
from runner_provisioner.clients.linode import LinodeClient, find_instance
from runner_provisioner.clients.ssh import ParamikoShell

__all__ = [
    "GitHubRunnerRegistry",
    "HTTPResponse",
    "LinodeClient",
    "ParamikoShell",
    "find_instance",
    "request",
    "unregister_runner",
]
