"""Provisioning workflow orchestrator.

Sequences one invocation as a small state machine:

    start -> validating_input -> creating | destroying -> done | failed

Creating: create instance -> wait ready -> mint token -> configure -> outputs.
If anything fails once an instance id exists, the instance is cleaned up
(best-effort unregister, then delete) and the original error is reported.

Destroying: resolve instance id (explicit or by search phrase) ->
best-effort unregister -> delete. Lookup failures never delete anything.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from runner_provisioner.clients.github import unregister_runner
from runner_provisioner.clients.linode import find_instance
from runner_provisioner.config import Action, ProvisionRequest, resolve_request
from runner_provisioner.configurator import configure_runner, render_runner_script
from runner_provisioner.errors import ConfigurationError, ProvisionError
from runner_provisioner.models import ProvisionOutputs, RemoteShell, RunnerRegistry, VmProvider
from runner_provisioner.readiness import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    SleepFn,
    wait_ready,
)

logger = logging.getLogger(__name__)


class State(str, Enum):
    """Workflow states."""

    START = "start"
    VALIDATING_INPUT = "validating_input"
    CREATING = "creating"
    DESTROYING = "destroying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ProvisionResult:
    """Terminal outcome of one invocation.

    Attributes:
        state: DONE or FAILED.
        outputs: Create outputs (None for destroy or on failure).
        error: The error that failed the invocation.
        cleanup_errors: Errors raised while cleaning up after a failure.
        history: States visited, in order.
    """

    state: State
    outputs: ProvisionOutputs | None = None
    error: Exception | None = None
    cleanup_errors: list[Exception] = field(default_factory=list)
    history: list[State] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == State.DONE

    @property
    def reason(self) -> str | None:
        """Human-readable failure cause."""
        return str(self.error) if self.error is not None else None


@dataclass(frozen=True)
class CleanupTarget:
    """Everything cleanup needs, captured when the instance is created."""

    instance_id: int
    owner: str
    repo: str
    runner_label: str


class Provisioner:
    """Runs create/destroy against injected provider, registry and shell."""

    def __init__(
        self,
        provider: VmProvider,
        registry: RunnerRegistry,
        shell: RemoteShell,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        sleep: SleepFn | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.shell = shell
        self.max_attempts = max_attempts
        self.interval = interval
        self.sleep = sleep
        self._history: list[State] = []

    def run(self, request: ProvisionRequest | Mapping[str, str]) -> ProvisionResult:
        """Run one invocation and return its terminal result. Never raises."""
        self._history = []
        self._enter(State.START)
        cleanup_errors: list[Exception] = []
        try:
            outputs = self._execute(request, cleanup_errors)
        except ProvisionError as e:
            return self._failed(e, cleanup_errors)
        except Exception as e:
            logger.exception("Unexpected error during provisioning")
            error = ProvisionError(f"Unexpected error: {e}")
            error.__cause__ = e
            return self._failed(error, cleanup_errors)

        self._enter(State.DONE)
        return ProvisionResult(state=State.DONE, outputs=outputs, history=list(self._history))

    def _failed(self, e: ProvisionError, cleanup_errors: list[Exception]) -> ProvisionResult:
        self._enter(State.FAILED)
        logger.error(f"Provisioning failed: {e}")
        return ProvisionResult(
            state=State.FAILED,
            error=e,
            cleanup_errors=cleanup_errors,
            history=list(self._history),
        )

    def execute(self, request: ProvisionRequest | Mapping[str, str]) -> ProvisionOutputs | None:
        """Run one invocation, raising the original error on failure."""
        result = self.run(request)
        if result.error is not None:
            raise result.error
        return result.outputs

    def _execute(
        self,
        request: ProvisionRequest | Mapping[str, str],
        cleanup_errors: list[Exception],
    ) -> ProvisionOutputs | None:
        self._enter(State.VALIDATING_INPUT)
        if not isinstance(request, ProvisionRequest):
            request = resolve_request(request)
        logger.info(f"Action: {request.action.value}")
        logger.info(f"Repository: {request.repo_slug}")
        logger.info(f"Runner Label: {request.runner_label}")

        if request.action == Action.CREATE:
            self._enter(State.CREATING)
            return self._create(request, cleanup_errors)

        self._enter(State.DESTROYING)
        self._destroy(request)
        return None

    def _create(
        self, request: ProvisionRequest, cleanup_errors: list[Exception]
    ) -> ProvisionOutputs:
        if request.sizing is None:
            raise ConfigurationError(
                "machine sizing is required to create", fields=["machine_type", "image"]
            )
        instance = self.provider.create_instance(
            request.sizing, request.root_password, request.runner_label, request.tags
        )
        target = CleanupTarget(
            instance_id=instance.id,
            owner=request.owner,
            repo=request.repo,
            runner_label=request.runner_label,
        )

        try:
            wait_ready(
                self.shell,
                instance.ipv4,
                request.root_password,
                max_attempts=self.max_attempts,
                interval=self.interval,
                sleep=self.sleep,
            )
            token = self.registry.mint_registration_token(request.owner, request.repo)
            script = render_runner_script(
                request.repo_url,
                token.token,
                request.runner_label,
                runner_version=request.runner_version,
            )
            configure_runner(self.shell, instance.ipv4, request.root_password, script)
        except ProvisionError:
            cleanup_errors.extend(self._cleanup(target))
            raise
        except Exception as e:
            # Anything unexpected still must not leak the instance
            cleanup_errors.extend(self._cleanup(target))
            raise ProvisionError(f"Unexpected error while creating runner: {e}") from e

        return ProvisionOutputs(
            machine_id=instance.id,
            machine_ip=instance.ipv4,
            runner_label=request.runner_label,
        )

    def _destroy(self, request: ProvisionRequest) -> None:
        if request.machine_id is not None:
            instance_id = request.machine_id
            logger.info(f"Destroying Linode instance with ID {instance_id}...")
        elif request.search_phrase:
            instance_id = find_instance(self.provider, request.search_phrase).id
            logger.info(f"Destroying matched Linode instance with ID {instance_id}...")
        else:
            raise ConfigurationError(
                "machine_id or search_phrase is required to destroy",
                fields=["machine_id|search_phrase"],
            )

        try:
            unregister_runner(self.registry, request.owner, request.repo, request.runner_label)
        except Exception as e:
            logger.warning(f"Failed to unregister runner, deleting instance anyway: {e}")

        self.provider.delete_instance(instance_id)

    def _cleanup(self, target: CleanupTarget) -> list[Exception]:
        """Unregister and delete after a failed create. Errors are returned, not raised."""
        logger.info(f"Cleaning up Linode instance with ID {target.instance_id} due to error...")
        errors: list[Exception] = []
        try:
            unregister_runner(self.registry, target.owner, target.repo, target.runner_label)
        except Exception as e:
            logger.error(f"Failed to unregister runner during cleanup: {e}")
            errors.append(e)

        try:
            self.provider.delete_instance(target.instance_id)
            logger.info(f"Linode machine {target.instance_id} destroyed during cleanup.")
        except Exception as e:
            logger.error(
                f"Failed to destroy Linode machine {target.instance_id} during cleanup: {e}"
            )
            errors.append(e)
        return errors

    def _enter(self, state: State) -> None:
        logger.debug(f"Workflow state -> {state.value}")
        self._history.append(state)
