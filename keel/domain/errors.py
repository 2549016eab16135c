"""
Domain Errors

Architectural Intent:
- One exception hierarchy for everything the engine can report
- Host-local errors carry enough context to attribute a failure to host+phase+hook
- Adapters translate library exceptions into these; nothing here is retried
"""

from typing import Optional, Sequence


class KeelError(Exception):
    pass


class SecretNotFoundError(KeelError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Secret not found: {path}")
        self.path = path


class SecretStoreUnreachable(KeelError):
    pass


class SecretUnavailable(KeelError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Secret {name!r} unavailable: {reason}")
        self.name = name
        self.reason = reason


class HookError(KeelError):
    def __init__(self, command: str, message: str, output: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.output = output


class HookFailed(HookError):
    def __init__(
        self, command: str, exit_code: Optional[int], output: str = ""
    ) -> None:
        super().__init__(
            command, f"Hook {command!r} exited with code {exit_code}", output
        )
        self.exit_code = exit_code


class HookTimedOut(HookError):
    def __init__(self, command: str, output: str = "") -> None:
        super().__init__(command, f"Hook {command!r} timed out", output)


class HookUnstartable(HookError):
    def __init__(self, command: str, output: str = "") -> None:
        super().__init__(command, f"Hook {command!r} could not be started", output)


class AmbiguousTargetState(KeelError):
    """More than one running workload matched the selector."""

    def __init__(self, selector: str, matches: Sequence[str]) -> None:
        super().__init__(
            f"{len(matches)} workloads match {selector!r}: {', '.join(matches)}"
        )
        self.selector = selector
        self.matches = tuple(matches)


class RegistryError(KeelError):
    pass


class RegistryAuthError(RegistryError):
    pass


class RegistryUnreachable(RegistryError):
    pass


class ArtifactNotFound(RegistryError):
    pass


class DescriptorError(KeelError):
    pass


class InvalidTransitionError(KeelError):
    pass
