from __future__ import annotations

from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .phases import Phase

E_STATE_ILLEGAL_COMMIT: Final[str] = "E_STATE_ILLEGAL_COMMIT"
E_STATE_ILLEGAL_TRANSITION: Final[str] = "E_STATE_ILLEGAL_TRANSITION"
E_STATE_LOCK_TIMEOUT: Final[str] = "E_STATE_LOCK_TIMEOUT"
E_STATE_CORRUPTED: Final[str] = "E_STATE_CORRUPTED"


class WorkflowError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class IllegalTransition(WorkflowError):
    def __init__(self, current: Phase, target: Phase, *, reason: str | None = None) -> None:
        message = f"transition {current.value} -> {target.value} is not allowed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(E_STATE_ILLEGAL_TRANSITION, message)
        self.current = current
        self.target = target


class IllegalCommitState(WorkflowError):
    def __init__(self, phase: Phase, message: str) -> None:
        super().__init__(E_STATE_ILLEGAL_COMMIT, message)
        self.phase = phase


class StateLockTimeout(WorkflowError):
    def __init__(self, message: str) -> None:
        super().__init__(E_STATE_LOCK_TIMEOUT, message)


class StateCorrupted(WorkflowError):
    def __init__(self, message: str) -> None:
        super().__init__(E_STATE_CORRUPTED, message)
