"""Remote configuration of a machine as a GitHub Actions runner.

The install script is a single versioned template. Rendering (substituting
repository URL, registration token and label) is separate from execution
so it can be checked without a machine.
"""

from __future__ import annotations

import logging
import shlex
from string import Template

from runner_provisioner.config import DEFAULT_RUNNER_VERSION, is_runner_version
from runner_provisioner.errors import RemoteCommandError
from runner_provisioner.models import RemoteShell

logger = logging.getLogger(__name__)

RUNNER_VERSION = DEFAULT_RUNNER_VERSION

RUNNER_SCRIPT = Template(
    """\
set -e
export RUNNER_ALLOW_RUNASROOT="1"
export DEBIAN_FRONTEND=noninteractive
apt-get update
apt-get install -y libssl-dev curl
mkdir -p actions-runner && cd actions-runner
curl -fsSL -o actions-runner-linux-x64-${runner_version}.tar.gz \\
  https://github.com/actions/runner/releases/download/v${runner_version}/actions-runner-linux-x64-${runner_version}.tar.gz
tar xzf ./actions-runner-linux-x64-${runner_version}.tar.gz
./config.sh --unattended --url ${repo_url} --token ${token} --labels ${label} --name ${label}
nohup ./run.sh > runner.log 2>&1 < /dev/null &
"""
)


def render_runner_script(
    repo_url: str,
    token: str,
    label: str,
    *,
    runner_version: str = RUNNER_VERSION,
) -> str:
    """Render the runner install script.

    Every substituted value is shell-quoted. The version is embedded in
    file names and URLs, so it is restricted to dotted digits.

    Raises:
        ValueError: If runner_version is not a dotted version number.
    """
    if not is_runner_version(runner_version):
        raise ValueError(f"Invalid runner version: {runner_version!r}")

    return RUNNER_SCRIPT.substitute(
        repo_url=shlex.quote(repo_url),
        token=shlex.quote(token),
        label=shlex.quote(label),
        runner_version=runner_version,
    )


def configure_runner(shell: RemoteShell, address: str, password: str, script: str) -> None:
    """Run the install script on a machine.

    Raises:
        RemoteCommandError: If the script exits non-zero or the session fails.
    """
    logger.info(f"Setting up GitHub runner on {address}...")
    result = shell.run(address, password, f"bash -c {shlex.quote(script)}")
    if not result.ok:
        logger.error(f"Runner setup failed on {address} with exit status {result.exit_status}")
        raise RemoteCommandError(
            "Runner setup failed",
            address=address,
            exit_status=result.exit_status,
            output=result.output,
        )
    logger.info("GitHub runner setup completed successfully.")
