"""Exception taxonomy for a single autonuke invocation.

Fatal errors (configuration, protection store, role assumption) abort the
invocation before or instead of any mutating call. Per-resource failures in
the drain and pre-cleanup phases are caught where they happen and never reach
the orchestrator.
"""


class AutonukeError(Exception):
    """Base class for all autonuke errors."""


class ConfigurationError(AutonukeError):
    """A required runtime parameter is missing or malformed."""


class TemplateError(ConfigurationError):
    """The aws-nuke config template cannot be rendered."""


class ProtectionStoreUnavailable(AutonukeError):
    """The protected account list could not be read. Always fatal."""


class RoleAssumptionError(AutonukeError):
    """Assuming the cross-account role failed."""

    def __init__(self, role_arn: str, reason: str):
        super().__init__(f"Failed to assume role {role_arn}: {reason}")
        self.role_arn = role_arn
        self.reason = reason


class TransientResourceError(AutonukeError):
    """One bucket, table or vault operation failed."""

    def __init__(self, resource_id: str, reason: str):
        super().__init__(f"{resource_id}: {reason}")
        self.resource_id = resource_id
        self.reason = reason


class DelegateFailure(AutonukeError):
    """aws-nuke exited non-zero."""

    def __init__(self, exit_code: int):
        super().__init__(f"aws-nuke failed with exit code {exit_code}")
        self.exit_code = exit_code


class RetryExhaustedError(AutonukeError):
    """A throttled call kept failing after every retry."""
