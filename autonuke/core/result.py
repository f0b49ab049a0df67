"""The classified outcome of one invocation, as reported to the scheduler."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

# Exit status of a process killed by SIGKILL (128 + 9), which is how the
# container runtime reports the OOM killer.
MEMORY_EXHAUSTION_EXIT_CODE = 137
SIGKILL = 9


class ResultKind(str, Enum):
    SUCCESS = "success"
    PROTECTED_SKIP = "protected-skip"
    ROLE_ASSUMPTION_FAILURE = "role-assumption-failure"
    DELEGATE_FAILURE = "delegate-failure"
    MEMORY_EXHAUSTION = "memory-exhaustion"
    FATAL_ERROR = "fatal-error"


@dataclass(frozen=True)
class ExecutionResult:
    kind: ResultKind
    delegate_exit_code: Optional[int] = None
    detail: str = ""
    # process exit status for fatal errors raised before aws-nuke ran
    exit_status: Optional[int] = None

    @classmethod
    def success(cls) -> "ExecutionResult":
        return cls(ResultKind.SUCCESS, delegate_exit_code=0)

    @classmethod
    def protected_skip(cls, account_id: str) -> "ExecutionResult":
        return cls(ResultKind.PROTECTED_SKIP, detail=f"Account {account_id} is protected")

    @classmethod
    def role_assumption_failure(cls, detail: str) -> "ExecutionResult":
        return cls(ResultKind.ROLE_ASSUMPTION_FAILURE, detail=detail)

    @classmethod
    def fatal(cls, detail: str, exit_status: int) -> "ExecutionResult":
        return cls(ResultKind.FATAL_ERROR, detail=detail, exit_status=exit_status)

    @property
    def exit_code(self) -> int:
        """Process exit status the scheduler sees."""
        if self.kind == ResultKind.FATAL_ERROR and self.exit_status is not None:
            return self.exit_status
        if self.kind in (ResultKind.SUCCESS, ResultKind.PROTECTED_SKIP):
            return 0
        if self.kind == ResultKind.MEMORY_EXHAUSTION:
            return MEMORY_EXHAUSTION_EXIT_CODE
        if self.kind == ResultKind.DELEGATE_FAILURE and self.delegate_exit_code:
            # negative codes (killed by signal) are mapped to 128 + signal
            if self.delegate_exit_code < 0:
                return 128 + abs(self.delegate_exit_code)
            return self.delegate_exit_code
        return 1

    @property
    def is_terminal(self) -> bool:
        return self.kind in (ResultKind.SUCCESS, ResultKind.PROTECTED_SKIP)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.kind.value,
            "exit_code": self.exit_code,
            "delegate_exit_code": self.delegate_exit_code,
            "detail": self.detail,
        }


def classify_exit_code(code: int) -> ExecutionResult:
    """Map the aws-nuke exit status to a result.

    ``subprocess`` reports a child killed by a signal as ``-signal``, so both
    137 and -9 mean the container ran out of memory.
    """
    if code == 0:
        return ExecutionResult.success()
    if code in (MEMORY_EXHAUSTION_EXIT_CODE, -SIGKILL):
        return ExecutionResult(ResultKind.MEMORY_EXHAUSTION, delegate_exit_code=code,
                               detail="aws-nuke was killed, most likely out of memory")
    return ExecutionResult(ResultKind.DELEGATE_FAILURE, delegate_exit_code=code,
                           detail=f"aws-nuke failed with exit code {code}")
