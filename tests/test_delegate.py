from unittest.mock import MagicMock

from autonuke.core.result import ResultKind
from autonuke.delegate import BINARY_NOT_FOUND, build_command, delegate, run_delegate

ROLE_ARN = 'arn:aws:iam::111111111111:role/NukeRole'


def completed(code):
    return MagicMock(returncode=code)


def test_build_command():
    cmd = build_command('/usr/local/bin/aws-nuke', '/tmp/nuke.yaml', ROLE_ARN, ['S3Object', 'CloudTrailTrail'])
    assert cmd == [
        '/usr/local/bin/aws-nuke', 'nuke', '-c', '/tmp/nuke.yaml',
        '--no-prompt', '--no-alias-check', '--no-dry-run',
        '--assume-role-arn', ROLE_ARN,
        '--assume-role-session-name', 'aws-nuke',
        '--exclude', 'S3Object', '--exclude', 'CloudTrailTrail',
    ]


def test_build_command_dry_run():
    cmd = build_command('aws-nuke', '/tmp/nuke.yaml', ROLE_ARN, dry_run=True)
    assert '--no-dry-run' not in cmd
    assert '--no-prompt' in cmd


def test_run_delegate_passes_environment():
    runner = MagicMock(return_value=completed(0))
    env = {'AWS_ACCESS_KEY_ID': 'ambient'}

    assert run_delegate(['aws-nuke', 'nuke'], env, runner) == 0
    runner.assert_called_once_with(['aws-nuke', 'nuke'], env=env, check=False)


def test_missing_binary():
    runner = MagicMock(side_effect=FileNotFoundError)
    assert run_delegate(['/missing/aws-nuke'], {}, runner) == BINARY_NOT_FOUND


def test_memory_exhaustion_distinct_from_generic_failure():
    oom = delegate('aws-nuke', '/tmp/nuke.yaml', ROLE_ARN, {}, runner=MagicMock(return_value=completed(137)))
    generic = delegate('aws-nuke', '/tmp/nuke.yaml', ROLE_ARN, {}, runner=MagicMock(return_value=completed(1)))

    assert oom.kind == ResultKind.MEMORY_EXHAUSTION
    assert generic.kind == ResultKind.DELEGATE_FAILURE
    assert generic.delegate_exit_code == 1


def test_success():
    result = delegate('aws-nuke', '/tmp/nuke.yaml', ROLE_ARN, {}, runner=MagicMock(return_value=completed(0)))
    assert result.kind == ResultKind.SUCCESS
