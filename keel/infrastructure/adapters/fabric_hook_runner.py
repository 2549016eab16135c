"""
Fabric Hook Runner

Architectural Intent:
- Infrastructure adapter implementing HookRunnerPort via Fabric/SSH
- One runner per target host; every run opens and closes its own connection
- The remote command is wrapped in coreutils `timeout -k GRACE N` so the
  remote process tree is killed on the host itself when the timeout expires;
  the Fabric-side timeout is only a backstop for a hung channel

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Environment travels over the SSH channel (inline_ssh_env=False), never
  inlined into the command string; sshd must AcceptEnv the injected names
- All argv words are quoted via shlex.join()
- runas is honoured with sudo only when it differs from the SSH login user
"""

import asyncio
import logging
import shlex
import socket
import time
from typing import Mapping, Optional

from fabric import Connection
from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import SSHException

from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.value_objects.auth_context import AuthContext
from keel.domain.value_objects.hook_outcome import (
    HookOutcome,
    HookStatus,
    truncate_output,
)
from keel.domain.value_objects.hook_spec import HookSpec
from keel.domain.value_objects.host import Host
from keel.infrastructure.adapters.local_hook_runner import (
    DEFAULT_KILL_GRACE_SECONDS,
    DEFAULT_OUTPUT_LIMIT,
    sudo_prefix,
)

logger = logging.getLogger(__name__)

# coreutils timeout: 124 when the timeout expired, 128+9 when it had to SIGKILL
_TIMEOUT_EXIT_CODES = (124, 137)
# shell: 126 not executable, 127 not found
_UNSTARTABLE_EXIT_CODES = (126, 127)
_CHANNEL_SLACK_SECONDS = 10


class FabricHookRunner(HookRunnerPort):
    """Adapter implementing HookRunnerPort on a remote host over SSH."""

    def __init__(
        self,
        host: Host,
        user: Optional[str] = None,
        connect_timeout: int = 30,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        auth: Optional[AuthContext] = None,
    ) -> None:
        self._host = host
        self._user = host.user or user
        self._connect_timeout = connect_timeout
        self._output_limit = output_limit
        self._kill_grace = int(max(1, kill_grace_seconds))
        self._auth = auth or AuthContext()

    def _get_connection(self) -> Connection:
        connect_kwargs = {"allow_agent": True, "look_for_keys": True}
        key_file = self._auth.get("ssh_key_file")
        if key_file:
            connect_kwargs["key_filename"] = key_file
        return Connection(
            host=self._host.address,
            user=self._user,
            port=self._host.port,
            connect_timeout=self._connect_timeout,
            connect_kwargs=connect_kwargs,
            inline_ssh_env=False,
        )

    def remote_command(self, hook: HookSpec, env: Mapping[str, str]) -> str:
        argv = list(hook.argv)
        if hook.run_as and hook.run_as != self._user:
            argv = sudo_prefix(hook.run_as, list(env)) + argv
        wrapped = [
            "timeout",
            "-k",
            str(self._kill_grace),
            str(hook.timeout_seconds),
            *argv,
        ]
        return shlex.join(wrapped)

    async def run(self, hook: HookSpec, env: Mapping[str, str]) -> HookOutcome:
        return await asyncio.get_running_loop().run_in_executor(
            None, self._run_sync, hook, dict(env)
        )

    def _run_sync(self, hook: HookSpec, env: dict[str, str]) -> HookOutcome:
        command = self.remote_command(hook, env)
        started = time.monotonic()
        conn = None
        try:
            conn = self._get_connection()
            result = conn.run(
                command,
                env=env,
                hide=True,
                warn=True,
                pty=False,
                in_stream=False,
                timeout=hook.timeout_seconds + self._kill_grace + _CHANNEL_SLACK_SECONDS,
            )
        except CommandTimedOut as e:
            logger.warning(
                "Hook %r on %s hung past its timeout", hook.command, self._host
            )
            return HookOutcome(
                HookStatus.TIMED_OUT,
                duration_ms=self._elapsed_ms(started),
                truncated_output=self._output(e.result),
            )
        except (SSHException, socket.error) as e:
            logger.error("Cannot run %r on %s: %s", hook.command, self._host, e)
            return HookOutcome(
                HookStatus.UNSTARTABLE,
                duration_ms=self._elapsed_ms(started),
                truncated_output=str(e),
            )
        finally:
            if conn is not None:
                conn.close()

        duration_ms = self._elapsed_ms(started)
        output = self._output(result)
        code = result.exited
        if code in _TIMEOUT_EXIT_CODES:
            return HookOutcome(HookStatus.TIMED_OUT, code, duration_ms, output)
        if code in _UNSTARTABLE_EXIT_CODES:
            return HookOutcome(HookStatus.UNSTARTABLE, code, duration_ms, output)
        return HookOutcome.from_exit_code(code, duration_ms, output)

    def _output(self, result) -> str:
        if result is None:
            return ""
        text = (result.stdout or "") + (result.stderr or "")
        return truncate_output(text, self._output_limit)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
