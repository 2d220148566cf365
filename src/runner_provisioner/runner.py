"""Invocation runner - wires inputs, clients, workflow and outputs together."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Mapping
from contextlib import AbstractContextManager
from pathlib import Path

from runner_provisioner.config import Action, ProvisionRequest, resolve_request
from runner_provisioner.deps import Deps, build_deps
from runner_provisioner.errors import ConfigurationError
from runner_provisioner.outputs import error_annotation, write_github_outputs, write_output
from runner_provisioner.readiness import SleepFn
from runner_provisioner.workflow import ProvisionResult, Provisioner

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1

DepsFactory = Callable[[ProvisionRequest, Mapping[str, str]], AbstractContextManager[Deps]]


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        stream=sys.stderr,
    )
    # paramiko is chatty at INFO ("Connected (version 2.0, ...)")
    logging.getLogger("paramiko").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def run_provisioning(
    inputs: Mapping[str, str],
    *,
    env: Mapping[str, str] | None = None,
    output_path: str | Path | None = None,
    deps_factory: DepsFactory = build_deps,
    sleep: SleepFn | None = None,
) -> tuple[int, ProvisionResult | None]:
    """Run one create/destroy invocation.

    This is the main orchestration function that:
    1. Resolves and validates the inputs
    2. Builds the API and SSH clients
    3. Runs the workflow
    4. Writes outputs ($GITHUB_OUTPUT and/or a JSON file)
    5. Reports the failure reason, if any

    Args:
        inputs: Configuration bag keyed by input name.
        env: Environment variables (defaults to os.environ).
        output_path: Optional path for a JSON copy of the outputs.
        deps_factory: Builds the clients (replaced in tests).
        sleep: Sleep function for the readiness probe (replaced in tests).

    Returns:
        (exit code, workflow result); the result is None if the inputs
        were rejected before the workflow started.
    """
    if env is None:
        env = os.environ

    try:
        request = resolve_request(inputs)
    except ConfigurationError as e:
        logger.error(f"Invalid inputs: {e}")
        _report_failure(env, str(e))
        return EXIT_FAILURE, None

    if request.action == Action.CREATE and not request.github_token:
        logger.warning("No github_token provided; registration token request will fail")

    with deps_factory(request, env) as deps:
        provisioner = Provisioner(deps.provider, deps.registry, deps.shell, sleep=sleep)
        result = provisioner.run(request)

    for cleanup_error in result.cleanup_errors:
        logger.error(f"Cleanup error: {cleanup_error}")

    if not result.ok:
        _report_failure(env, result.reason or "unknown error")
        return EXIT_FAILURE, result

    outputs = result.outputs.as_dict() if result.outputs else {}
    if outputs:
        github_output = env.get("GITHUB_OUTPUT")
        if github_output:
            write_github_outputs(github_output, outputs)
            logger.info(f"Outputs written to {github_output}")
    if output_path:
        write_output(output_path, {"state": result.state.value, "outputs": outputs})
        logger.info(f"Output written to: {output_path}")

    logger.info(f"{request.action.value} completed successfully")
    return EXIT_SUCCESS, result


def _report_failure(env: Mapping[str, str], reason: str) -> None:
    """Surface the failure reason to the GitHub Actions UI when running there."""
    if env.get("GITHUB_ACTIONS") == "true":
        print(error_annotation(reason), file=sys.stdout, flush=True)
