"""Retry/escalation contract shared with the outer scheduler.

The scheduler owns the retry loop. This module encodes the rules it follows
so the orchestrator can report the next attempt alongside its result:

* memory exhaustion doubles the memory budget and re-runs unchanged;
* any other failure moves on to the next attempt;
* the final attempt excludes resource types known to be slow or unreliable
  to delete, trading completeness for termination;
* after ``max_attempts`` there is no next attempt.
"""
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from autonuke.core.result import ExecutionResult, ResultKind

# aws-nuke resource types that regularly stall or fail a run: long lived
# audit trails, certificate stores and backup constructs.
SLOW_RESOURCE_TYPES = (
    "CloudTrailTrail",
    "ACMCertificate",
    "ACMPCACertificateAuthority",
    "BackupVault",
    "BackupPlan",
    "BackupSelection",
    "BackupRecoveryPoint",
)


@dataclass(frozen=True)
class RetryAttempt:
    number: int = 1
    memory_mib: int = 4096
    excluded_resource_types: Tuple[str, ...] = ()

    def to_dict(self):
        return {
            "attempt": self.number,
            "memory_mib": self.memory_mib,
            "exclude_resource_types": list(self.excluded_resource_types),
        }


@dataclass(frozen=True)
class EscalationPolicy:
    max_attempts: int = 3
    max_memory_mib: int = 30720
    final_attempt_exclusions: Tuple[str, ...] = field(default=SLOW_RESOURCE_TYPES)

    def next_attempt(self, attempt: RetryAttempt, result: ExecutionResult) -> Optional[RetryAttempt]:
        """The attempt the scheduler should run next, or None when done."""
        if result.is_terminal:
            return None
        if attempt.number >= self.max_attempts:
            return None

        if result.kind == ResultKind.MEMORY_EXHAUSTION:
            memory = min(attempt.memory_mib * 2, self.max_memory_mib)
            nxt = replace(attempt, number=attempt.number + 1, memory_mib=memory)
        else:
            nxt = replace(attempt, number=attempt.number + 1)

        if nxt.number == self.max_attempts:
            nxt = replace(nxt, excluded_resource_types=self._merge(nxt.excluded_resource_types))
        return nxt

    def _merge(self, existing: Tuple[str, ...]) -> Tuple[str, ...]:
        merged = list(existing)
        for resource_type in self.final_attempt_exclusions:
            if resource_type not in merged:
                merged.append(resource_type)
        return tuple(merged)
