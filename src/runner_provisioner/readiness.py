"""Readiness prober for freshly created machines.

Polls the remote shell with a trivial command until it succeeds or the
retry budget is spent. Fixed interval, bounded attempts, no backoff.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from runner_provisioner.errors import ProvisionError, TimeoutError
from runner_provisioner.models import RemoteShell

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_INTERVAL_SECONDS = 30.0
PROBE_COMMAND = "echo SSH is ready"

# A sleep function returns False when it was cancelled before the interval elapsed
SleepFn = Callable[[float], bool | None]


class CancellableSleep:
    """Interruptible sleep for the prober.

    Calling cancel() from another thread (or a signal handler) wakes any
    pending wait and makes every later wait return immediately.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def __call__(self, seconds: float) -> bool:
        """Sleep for `seconds`. Returns False if cancelled."""
        return not self._cancelled.wait(seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


def wait_ready(
    shell: RemoteShell,
    address: str,
    password: str,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    sleep: SleepFn | None = None,
) -> int:
    """Wait until `address` accepts remote commands.

    Args:
        shell: Remote shell used for the probe command.
        address: Machine address.
        password: Root password.
        max_attempts: Attempts before giving up.
        interval: Seconds to sleep between failed attempts.
        sleep: Sleep function (defaults to a CancellableSleep).

    Returns:
        The attempt number (1-based) that succeeded.

    Raises:
        TimeoutError: After max_attempts consecutive failures, or if the
            sleep was cancelled.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if sleep is None:
        sleep = CancellableSleep()

    for attempt in range(1, max_attempts + 1):
        logger.info(f"Attempting SSH connection to {address}, attempt {attempt} of {max_attempts}")
        try:
            result = shell.run(address, password, PROBE_COMMAND)
            if result.ok:
                logger.info(f"{address} is accepting SSH commands")
                return attempt
            reason = f"probe exited with status {result.exit_status}"
        except (ProvisionError, OSError) as e:
            reason = str(e) or type(e).__name__

        if attempt == max_attempts:
            logger.warning(f"SSH not ready on {address} ({reason}); no attempts left")
            break

        logger.info(f"SSH not ready yet ({reason}). Retrying in {interval:g} seconds...")
        if sleep(interval) is False:
            raise TimeoutError(
                f"Readiness probe for {address} cancelled", address=address, attempts=attempt
            )

    raise TimeoutError(
        f"Unable to connect to {address} after {max_attempts} attempts.",
        address=address,
        attempts=max_attempts,
    )
