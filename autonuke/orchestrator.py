import json
import logging
import os
import subprocess
from typing import Optional

from autonuke.core.config import Config
from autonuke.core.credentials import AccountTarget, AmbientIdentity, LeaseManager, utcnow
from autonuke.core.errors import RoleAssumptionError
from autonuke.core.escalation import EscalationPolicy, RetryAttempt
from autonuke.core.logging import timed
from autonuke.core.result import ExecutionResult
from autonuke.delegate import delegate
from autonuke.protection import GateDecision, ProtectionGate
from autonuke.resources.backup import RecoveryPointCleaner
from autonuke.resources.base import Report
from autonuke.resources.dynamodb import TableProtectionCleaner
from autonuke.resources.s3 import BucketDrainer, DrainReport
from autonuke import template


class Orchestrator:
    """Runs one cleanup invocation against one target account.

    Phases run strictly in order: protection gate, role assumption, bucket
    drain, pre-cleanup, config rendering, aws-nuke. Every phase before
    aws-nuke tolerates work that an earlier attempt already completed, so the
    scheduler can re-run the whole invocation after any failure.
    """

    def __init__(self, config: Config, ambient: Optional[AmbientIdentity] = None,
                 clock=utcnow, runner=subprocess.run):
        self.config = config
        self.ambient = ambient or AmbientIdentity()
        self.clock = clock
        self.runner = runner
        self.report = Report()
        self.target = AccountTarget(config.account_id, config.role_name, config.partition)

    def run(self) -> ExecutionResult:
        """Run every phase and return the classified result.

        Raises:
            ConfigurationError: before any AWS call, on invalid configuration
            ProtectionStoreUnavailable: when the protection list cannot be read
        """
        self.config.validate()
        account_id = self.config.account_id
        logging.info(f"Target account {account_id}, role {self.target.role_arn}, regions {self.config.regions}",
                     extra={'account_id': account_id})

        gate = ProtectionGate(self.ambient, self.config.protection_parameter)
        protected = gate.load()
        if gate.evaluate(account_id, protected) is GateDecision.DENY:
            return ExecutionResult.protected_skip(account_id)

        # rendered before any mutation so a broken template aborts cleanly
        rendered = template.render_file(self.config.template_path, account_id,
                                        protected.accounts, self.config.regions)

        leases = LeaseManager(self.ambient, self.target, self.config.session_label,
                              threshold=self.config.refresh_threshold, clock=self.clock)
        try:
            leases.acquire()
            self.drain_buckets(leases)
            self.pre_cleanup(leases)
        except RoleAssumptionError as e:
            logging.error(str(e), extra={'account_id': account_id})
            return ExecutionResult.role_assumption_failure(str(e))

        self.log_report()
        return self.run_delegate(rendered)

    @timed('drain')
    def drain_buckets(self, leases: LeaseManager) -> DrainReport:
        return BucketDrainer(leases, self.config, self.report).drain_all()

    @timed('pre-cleanup')
    def pre_cleanup(self, leases: LeaseManager) -> None:
        tables = TableProtectionCleaner(leases, self.config, self.report)
        recovery_points = RecoveryPointCleaner(leases, self.config, self.report)
        for region in self.config.regions:
            logging.info(f"=== Processing region: {region} ===", extra={'region': region})
            tables.cleanup(region)
            recovery_points.cleanup(region)

    @timed('delegate')
    def run_delegate(self, rendered: str) -> ExecutionResult:
        # aws-nuke assumes the target role itself and refreshes its own
        # credentials, so it runs as the ambient identity
        logging.info("Restoring original execution role session for aws-nuke")
        env = self.ambient.environment()

        config_path = template.write_config(rendered, self.config.work_dir, self.config.account_id)
        try:
            return delegate(
                self.config.nuke_binary,
                config_path,
                self.target.role_arn,
                env,
                exclude_resource_types=self.config.exclude_resource_types,
                dry_run=self.config.dry_run,
                runner=self.runner,
            )
        finally:
            os.remove(config_path)

    def log_report(self) -> None:
        for resource_type, counts in self.report.summary().items():
            logging.info(f"{resource_type}: {counts['deleted']} deleted, {counts['failed']} failed")
        for resource_type, results in self.report.entries.items():
            for item in results['failed']:
                logging.warning(f"{resource_type} failed: {item}")

    def current_attempt(self) -> RetryAttempt:
        return RetryAttempt(
            number=self.config.attempt,
            memory_mib=self.config.memory_mib,
            excluded_resource_types=tuple(self.config.exclude_resource_types),
        )

    def write_result(self, result: ExecutionResult, path: Optional[str] = None) -> dict:
        """Hand the result and the next attempt to the scheduler as JSON."""
        policy = EscalationPolicy(max_attempts=self.config.max_attempts)
        nxt = policy.next_attempt(self.current_attempt(), result)
        payload = dict(result.to_dict(), account_id=self.config.account_id,
                       attempt=self.config.attempt,
                       next_attempt=nxt.to_dict() if nxt else None)
        target = path or self.config.result_file
        if target:
            with open(target, 'w') as f:
                json.dump(payload, f, indent=2)
        return payload
