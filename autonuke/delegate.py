"""Run aws-nuke as a subprocess and classify how it exited."""
import logging
import subprocess
from typing import Dict, List, Sequence

from autonuke.core.result import ExecutionResult, classify_exit_code

# Conventional shell status for "command not found"
BINARY_NOT_FOUND = 127
DELEGATE_SESSION_NAME = "aws-nuke"


def build_command(binary: str, config_path: str, role_arn: str,
                  exclude_resource_types: Sequence[str] = (), dry_run: bool = False) -> List[str]:
    cmd = [
        binary, "nuke",
        "-c", config_path,
        "--no-prompt",
        "--no-alias-check",
    ]
    if not dry_run:
        cmd.append("--no-dry-run")
    cmd += [
        "--assume-role-arn", role_arn,
        "--assume-role-session-name", DELEGATE_SESSION_NAME,
    ]
    for resource_type in exclude_resource_types:
        cmd += ["--exclude", resource_type]
    return cmd


def run_delegate(cmd: List[str], env: Dict[str, str], runner=subprocess.run) -> int:
    """Run aws-nuke to completion, streaming its output, and return its exit code."""
    logging.info(f"Running aws-nuke: {' '.join(cmd)}", extra={'phase': 'delegate'})
    try:
        completed = runner(cmd, env=env, check=False)
    except FileNotFoundError:
        logging.error(f"aws-nuke binary not found: {cmd[0]}")
        return BINARY_NOT_FOUND
    return completed.returncode


def delegate(binary: str, config_path: str, role_arn: str, env: Dict[str, str],
             exclude_resource_types: Sequence[str] = (), dry_run: bool = False,
             runner=subprocess.run) -> ExecutionResult:
    cmd = build_command(binary, config_path, role_arn, exclude_resource_types, dry_run)
    code = run_delegate(cmd, env, runner)
    result = classify_exit_code(code)
    if code == 0:
        logging.info("aws-nuke ran successfully.")
    else:
        logging.error(f"aws-nuke failed with exit code {code} ({result.kind.value})")
    return result
