"""In-memory fakes for testing the workflow without network access.

Provides implementations of the capability protocols that record every
call, plus a fake clock for the readiness prober:
- FakeProvider: VmProvider keeping instances in a dict
- FakeRegistry: RunnerRegistry with configurable delete status
- FakeShell: RemoteShell failing a scripted number of times
- FakeSleep: records requested sleeps instead of sleeping

Usage:
    from runner_provisioner.testing import FakeProvider, FakeRegistry, FakeShell, FakeSleep
    from runner_provisioner.workflow import Provisioner

    def test_create(create_request):
        provider, registry, shell, sleep = FakeProvider(), FakeRegistry(), FakeShell(), FakeSleep()
        result = Provisioner(provider, registry, shell, sleep=sleep).run(create_request)
        assert result.ok
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass, field

from runner_provisioner.config import MachineSizing
from runner_provisioner.errors import ProviderError, RemoteCommandError
from runner_provisioner.models import CommandResult, RegistrationToken, RunnerRegistration, VmInstance


class FakeProvider:
    """VmProvider keeping instances in memory."""

    def __init__(self, instances: Iterable[VmInstance] = (), *, fail_create: bool = False) -> None:
        self.instances: dict[int, VmInstance] = {i.id: i for i in instances}
        self.fail_create = fail_create
        self.fail_delete = False
        self.created: list[VmInstance] = []
        self.deleted: list[int] = []
        self.list_calls = 0
        self._ids = itertools.count(1000)

    def create_instance(
        self,
        sizing: MachineSizing,
        root_password: str,
        label: str,
        tags: Iterable[str],
    ) -> VmInstance:
        if self.fail_create:
            raise ProviderError("Failed to create Linode instance: 400", status_code=400)
        instance_id = next(self._ids)
        instance = VmInstance(
            id=instance_id,
            ipv4=f"203.0.113.{instance_id % 250 + 1}",
            label=label,
            tags=frozenset(tags),
            status="provisioning",
        )
        self.instances[instance_id] = instance
        self.created.append(instance)
        return instance

    def list_instances(self) -> list[VmInstance]:
        self.list_calls += 1
        return list(self.instances.values())

    def delete_instance(self, instance_id: int) -> None:
        self.deleted.append(instance_id)
        if self.fail_delete:
            raise ProviderError(f"Failed to delete Linode instance {instance_id}: 500", status_code=500)
        self.instances.pop(instance_id, None)


class FakeRegistry:
    """RunnerRegistry keeping runners in memory."""

    def __init__(
        self,
        runners: Iterable[RunnerRegistration] = (),
        *,
        token: str = "AABBCCDDEEFF",
        delete_status: int = 204,
        fail_mint: Exception | None = None,
        fail_find: Exception | None = None,
    ) -> None:
        self.runners = list(runners)
        self.token = token
        self.delete_status = delete_status
        self.fail_mint = fail_mint
        self.fail_find = fail_find
        self.minted: list[tuple[str, str]] = []
        self.deleted: list[int] = []

    def mint_registration_token(self, owner: str, repo: str) -> RegistrationToken:
        self.minted.append((owner, repo))
        if self.fail_mint is not None:
            raise self.fail_mint
        return RegistrationToken(token=self.token, expires_at="2026-10-19T13:00:00Z")

    def find_runner_by_label(
        self, owner: str, repo: str, label: str
    ) -> RunnerRegistration | None:
        if self.fail_find is not None:
            raise self.fail_find
        return next((r for r in self.runners if label in r.labels), None)

    def delete_runner(self, owner: str, repo: str, runner_id: int) -> bool:
        self.deleted.append(runner_id)
        if self.delete_status != 204:
            return False
        self.runners = [r for r in self.runners if r.id != runner_id]
        return True


@dataclass
class FakeShell:
    """RemoteShell that fails the readiness probe `probe_failures` times.

    Any command other than the probe is treated as the configuration script
    and exits with `script_exit_status`.
    """

    probe_failures: int = 0
    script_exit_status: int = 0
    script_output: str = ""
    commands: list[tuple[str, str]] = field(default_factory=list)

    def run(self, address: str, password: str, command: str) -> CommandResult:
        self.commands.append((address, command))
        if command.startswith("echo "):
            if self.probe_attempts <= self.probe_failures:
                raise RemoteCommandError(f"Unable to SSH into {address}: refused", address=address)
            return CommandResult(exit_status=0, output="SSH is ready\n")
        return CommandResult(exit_status=self.script_exit_status, output=self.script_output)

    @property
    def probe_attempts(self) -> int:
        return sum(1 for _, c in self.commands if c.startswith("echo "))

    @property
    def scripts(self) -> list[str]:
        return [c for _, c in self.commands if not c.startswith("echo ")]


@dataclass
class FakeSleep:
    """Sleep replacement recording intervals; optionally reports cancellation."""

    calls: list[float] = field(default_factory=list)
    cancel_after: int | None = None

    def __call__(self, seconds: float) -> bool:
        self.calls.append(seconds)
        return self.cancel_after is None or len(self.calls) <= self.cancel_after


def make_sizing(machine_type: str = "g6-standard-1", image: str = "linux-default") -> MachineSizing:
    """Sizing used throughout the tests."""
    return MachineSizing(machine_type=machine_type, image=image)
