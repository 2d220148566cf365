"""Domain records and capability interfaces.

This module defines the contracts between the workflow and its collaborators:
- VmInstance / RunnerRegistration / RegistrationToken: records returned by the APIs
- CommandResult: outcome of a remote shell command
- ProvisionOutputs: what a successful create emits
- VmProvider / RunnerRegistry / RemoteShell: capability protocols the
  orchestrator depends on, implemented by the concrete clients and by the
  in-memory fakes in runner_provisioner.testing
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from runner_provisioner.config import MachineSizing


@dataclass(frozen=True)
class VmInstance:
    """A virtual machine as reported by the cloud provider.

    Attributes:
        id: Provider-assigned identifier.
        ipv4: Primary public IPv4 address (empty until assigned).
        label: Instance label.
        tags: Tags attached to the instance.
        status: Provider lifecycle status (provisioning, running, ...).
    """

    id: int
    ipv4: str
    label: str
    tags: frozenset[str] = field(default_factory=frozenset)
    status: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> VmInstance:
        """Build from a Linode instance JSON object."""
        addresses = data.get("ipv4") or []
        return cls(
            id=int(data["id"]),
            ipv4=addresses[0] if addresses else "",
            label=data.get("label", ""),
            tags=frozenset(data.get("tags") or []),
            status=data.get("status", ""),
        )

    def matches(self, phrase: str) -> bool:
        """Search policy for destroy-by-phrase.

        Matches when the phrase is a substring of the label, equals the label,
        or is one of the tags.
        """
        return phrase in self.label or self.label == phrase or phrase in self.tags


@dataclass(frozen=True)
class RunnerRegistration:
    """A self-hosted runner registered with the CI service."""

    id: int
    name: str
    labels: frozenset[str] = field(default_factory=frozenset)
    status: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> RunnerRegistration:
        """Build from a GitHub runner JSON object."""
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            labels=frozenset(label["name"] for label in data.get("labels") or []),
            status=data.get("status", ""),
        )


@dataclass(frozen=True)
class RegistrationToken:
    """Short-lived, single-use runner registration credential."""

    token: str = field(repr=False)
    expires_at: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command executed over the remote shell."""

    exit_status: int
    output: str = ""

    @property
    def ok(self) -> bool:
        """True if the command exited with status 0."""
        return self.exit_status == 0


@dataclass(frozen=True)
class ProvisionOutputs:
    """Outputs of a successful create."""

    machine_id: int
    machine_ip: str
    runner_label: str

    def as_dict(self) -> dict[str, str]:
        return {
            "machine_id": str(self.machine_id),
            "machine_ip": self.machine_ip,
            "runner_label": self.runner_label,
        }


class VmProvider(Protocol):
    """Create/list/delete capability of a cloud VM provider."""

    def create_instance(
        self,
        sizing: MachineSizing,
        root_password: str,
        label: str,
        tags: Iterable[str],
    ) -> VmInstance: ...

    def list_instances(self) -> list[VmInstance]: ...

    def delete_instance(self, instance_id: int) -> None: ...


class RunnerRegistry(Protocol):
    """Mint/find/delete capability of the CI orchestration service."""

    def mint_registration_token(self, owner: str, repo: str) -> RegistrationToken: ...

    def find_runner_by_label(
        self, owner: str, repo: str, label: str
    ) -> RunnerRegistration | None: ...

    def delete_runner(self, owner: str, repo: str, runner_id: int) -> bool: ...


class RemoteShell(Protocol):
    """Black-box command execution channel to a machine."""

    def run(self, address: str, password: str, command: str) -> CommandResult: ...
