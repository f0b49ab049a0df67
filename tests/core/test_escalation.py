from autonuke.core.escalation import EscalationPolicy, RetryAttempt, SLOW_RESOURCE_TYPES
from autonuke.core.result import ExecutionResult, ResultKind, classify_exit_code


def test_classify_exit_codes():
    assert classify_exit_code(0).kind == ResultKind.SUCCESS
    assert classify_exit_code(137).kind == ResultKind.MEMORY_EXHAUSTION
    assert classify_exit_code(-9).kind == ResultKind.MEMORY_EXHAUSTION
    generic = classify_exit_code(1)
    assert generic.kind == ResultKind.DELEGATE_FAILURE
    assert generic.delegate_exit_code == 1


def test_result_exit_codes():
    assert ExecutionResult.success().exit_code == 0
    assert ExecutionResult.protected_skip('111111111111').exit_code == 0
    assert ExecutionResult.role_assumption_failure('denied').exit_code == 1
    assert classify_exit_code(137).exit_code == 137
    assert classify_exit_code(-9).exit_code == 137
    assert classify_exit_code(3).exit_code == 3
    assert classify_exit_code(-15).exit_code == 143


def test_success_and_skip_are_terminal():
    policy = EscalationPolicy()
    assert policy.next_attempt(RetryAttempt(), ExecutionResult.success()) is None
    assert policy.next_attempt(RetryAttempt(), ExecutionResult.protected_skip('1')) is None


def test_memory_exhaustion_doubles_memory():
    policy = EscalationPolicy(max_attempts=4)
    nxt = policy.next_attempt(RetryAttempt(1, 4096), classify_exit_code(137))
    assert nxt == RetryAttempt(2, 8192, ())


def test_memory_is_capped():
    policy = EscalationPolicy(max_attempts=4, max_memory_mib=10000)
    nxt = policy.next_attempt(RetryAttempt(1, 8192), classify_exit_code(137))
    assert nxt.memory_mib == 10000


def test_generic_failure_keeps_memory():
    policy = EscalationPolicy(max_attempts=4)
    nxt = policy.next_attempt(RetryAttempt(1, 4096, ('S3Object',)), classify_exit_code(1))
    assert nxt == RetryAttempt(2, 4096, ('S3Object',))


def test_final_attempt_adds_slow_resource_types():
    policy = EscalationPolicy(max_attempts=3)
    nxt = policy.next_attempt(RetryAttempt(2, 4096, ('S3Object', 'CloudTrailTrail')), classify_exit_code(1))
    assert nxt.number == 3
    assert nxt.excluded_resource_types[0] == 'S3Object'
    assert set(SLOW_RESOURCE_TYPES) <= set(nxt.excluded_resource_types)
    assert nxt.excluded_resource_types.count('CloudTrailTrail') == 1


def test_no_attempt_after_maximum():
    policy = EscalationPolicy(max_attempts=3)
    assert policy.next_attempt(RetryAttempt(3), classify_exit_code(1)) is None
    assert policy.next_attempt(RetryAttempt(3), classify_exit_code(137)) is None


def test_fatal_error_keeps_its_exit_status_and_advances():
    result = ExecutionResult.fatal('OSError: read-only', 3)
    assert result.exit_code == 3
    assert result.to_dict()['result'] == 'fatal-error'
    assert not result.is_terminal

    nxt = EscalationPolicy(max_attempts=3).next_attempt(RetryAttempt(number=1), result)
    assert nxt.number == 2
    assert nxt.memory_mib == 4096
