"""Remote shell transport over SSH (paramiko).

Password-authenticated command execution as root. Host keys are accepted
on first contact because every target is a freshly created machine with
no known identity.
"""

from __future__ import annotations

import logging
import socket

import paramiko

from runner_provisioner.errors import RemoteCommandError
from runner_provisioner.models import CommandResult

logger = logging.getLogger(__name__)


class ParamikoShell:
    """RemoteShell implementation using paramiko.SSHClient."""

    def __init__(
        self,
        *,
        username: str = "root",
        port: int = 22,
        connect_timeout: float = 30.0,
        command_timeout: float | None = 1800.0,
    ) -> None:
        self.username = username
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout

    def run(self, address: str, password: str, command: str) -> CommandResult:
        """Run a command and wait for it to finish.

        Returns:
            CommandResult with the exit status and combined stdout/stderr.

        Raises:
            RemoteCommandError: If no SSH session could be established or the
                channel failed mid-command.
        """
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=address,
                port=self.port,
                username=self.username,
                password=password,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
                look_for_keys=False,
                allow_agent=False,
            )
            _, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, socket.timeout, OSError) as e:
            raise RemoteCommandError(
                f"Unable to SSH into {address}: {e}", address=address
            ) from e
        finally:
            client.close()

        logger.debug(f"SSH {self.username}@{address} exited with status {exit_status}")
        return CommandResult(exit_status=exit_status, output=out + err)
