"""
Local Hook Runner

Architectural Intent:
- Infrastructure adapter implementing HookRunnerPort with asyncio subprocesses
- Each hook runs in its own session/process group so the whole tree can be
  terminated on timeout (SIGTERM, then SIGKILL after a grace period)
- Output (stdout+stderr) is pumped concurrently and only the tail is kept

Security:
- Hook environment is passed via env=, never on the command line
- Hooks with run_as use `sudo -n -u USER --preserve-env=NAMES`; only variable
  names appear in argv, never values
- argv is executed directly, no shell
"""

import asyncio
import getpass
import logging
import os
import signal
import time
from typing import Mapping, Optional, Sequence

from keel.domain.ports.hook_runner_port import HookRunnerPort
from keel.domain.value_objects.hook_outcome import (
    HookOutcome,
    HookStatus,
    truncate_output,
)
from keel.domain.value_objects.hook_spec import HookSpec

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 4096
DEFAULT_KILL_GRACE_SECONDS = 5.0


def sudo_prefix(run_as: str, env_names: Sequence[str]) -> list[str]:
    prefix = ["sudo", "-n", "-u", run_as]
    if env_names:
        prefix.append(f"--preserve-env={','.join(sorted(env_names))}")
    prefix.append("--")
    return prefix


class LocalHookRunner(HookRunnerPort):
    """Adapter implementing HookRunnerPort on the local machine."""

    def __init__(
        self,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        cwd: Optional[str] = None,
        base_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._output_limit = output_limit
        self._kill_grace = kill_grace_seconds
        self._cwd = cwd
        self._base_env = base_env

    def _argv(self, hook: HookSpec, env: Mapping[str, str]) -> list[str]:
        argv = list(hook.argv)
        if hook.run_as and hook.run_as != getpass.getuser():
            argv = sudo_prefix(hook.run_as, list(env)) + argv
        return argv

    async def run(self, hook: HookSpec, env: Mapping[str, str]) -> HookOutcome:
        argv = self._argv(hook, env)
        full_env = dict(os.environ if self._base_env is None else self._base_env)
        full_env.update(env)

        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=full_env,
                cwd=self._cwd,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            logger.error("Hook %r could not be started: %s", hook.command, e)
            return HookOutcome(
                HookStatus.UNSTARTABLE,
                duration_ms=self._elapsed_ms(started),
                truncated_output=str(e),
            )

        buffer = bytearray()
        reader = asyncio.ensure_future(self._pump(process, buffer))

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=hook.timeout_seconds)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(
                "Hook %r exceeded %ss; terminating process group %d",
                hook.command,
                hook.timeout_seconds,
                process.pid,
            )
            await self._terminate(process)

        try:
            await asyncio.wait_for(reader, timeout=self._kill_grace)
        except asyncio.TimeoutError:
            # a detached grandchild still holds the pipe open
            reader.cancel()

        duration_ms = self._elapsed_ms(started)
        output = truncate_output(
            buffer.decode("utf-8", errors="replace"), self._output_limit
        )
        if timed_out:
            return HookOutcome(
                HookStatus.TIMED_OUT, process.returncode, duration_ms, output
            )
        return HookOutcome.from_exit_code(process.returncode, duration_ms, output)

    async def _pump(self, process: asyncio.subprocess.Process, buffer: bytearray) -> None:
        assert process.stdout is not None
        keep = self._output_limit + 1
        while True:
            chunk = await process.stdout.read(65536)
            if not chunk:
                return
            buffer.extend(chunk)
            if len(buffer) > keep:
                del buffer[:-keep]

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_grace)
        except asyncio.TimeoutError:
            self._signal_group(process, signal.SIGKILL)
            await process.wait()

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            logger.warning(
                "Not permitted to signal process group %d; signalling leader only",
                process.pid,
            )
            try:
                process.send_signal(sig)
            except ProcessLookupError:
                pass

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
