"""ci-runner-provisioner: ephemeral Linode machines as GitHub Actions runners."""

__version__ = "0.1.0"

from runner_provisioner.config import (
    Action,
    MachineSizing,
    ProvisionRequest,
    parse_tags,
    resolve_request,
)
from runner_provisioner.configurator import configure_runner, render_runner_script
from runner_provisioner.deps import Deps, build_deps
from runner_provisioner.errors import (
    AmbiguousMatchError,
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ProvisionError,
    RegistryError,
    RemoteCommandError,
    TimeoutError,
)
from runner_provisioner.models import (
    ProvisionOutputs,
    RegistrationToken,
    RunnerRegistration,
    VmInstance,
)
from runner_provisioner.readiness import CancellableSleep, wait_ready
from runner_provisioner.runner import run_provisioning
from runner_provisioner.workflow import ProvisionResult, Provisioner, State

__all__ = [
    # Inputs
    "Action",
    "MachineSizing",
    "ProvisionRequest",
    "parse_tags",
    "resolve_request",
    # Workflow
    "Deps",
    "ProvisionResult",
    "Provisioner",
    "State",
    "build_deps",
    "run_provisioning",
    # Steps
    "CancellableSleep",
    "configure_runner",
    "render_runner_script",
    "wait_ready",
    # Records
    "ProvisionOutputs",
    "RegistrationToken",
    "RunnerRegistration",
    "VmInstance",
    # Errors
    "AmbiguousMatchError",
    "ConfigurationError",
    "NotFoundError",
    "ProviderError",
    "ProvisionError",
    "RegistryError",
    "RemoteCommandError",
    "TimeoutError",
]
