"""Runtime configuration: YAML file, environment variables, validation."""
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Optional, Any, Mapping, Pattern

import yaml

from autonuke.core.errors import ConfigurationError

DEFAULT_PROTECTION_PARAMETER = "/autonuke/blocklist"
DEFAULT_NUKE_BINARY = "/usr/local/bin/aws-nuke"
DEFAULT_SESSION_LABEL = "AwsNukeSession"

ACCOUNT_ID_RE = re.compile(r"^\d{12}$")


@dataclass
class Config:
    """autonuke configuration for one invocation."""
    account_id: Optional[str] = None
    role_name: Optional[str] = None
    partition: str = "aws"
    regions: List[str] = field(default_factory=list)
    exclude_bucket_patterns: List[str] = field(default_factory=list)
    protection_parameter: str = DEFAULT_PROTECTION_PARAMETER
    template_path: Optional[str] = None
    work_dir: Optional[str] = None
    max_jobs: int = 12
    refresh_threshold: int = 300
    session_label: str = DEFAULT_SESSION_LABEL
    nuke_binary: str = DEFAULT_NUKE_BINARY
    exclude_resource_types: List[str] = field(default_factory=list)
    attempt: int = 1
    max_attempts: int = 3
    memory_mib: int = 4096
    dry_run: bool = False
    result_file: Optional[str] = None
    json_logs: bool = False
    verbosity: int = 1

    def validate(self) -> None:
        """Reject the configuration before any AWS call is made.

        Raises:
            ConfigurationError: naming every problem found
        """
        problems = []
        if not self.account_id:
            problems.append("account_id (ACCOUNT_ID) is not set")
        elif not ACCOUNT_ID_RE.match(self.account_id):
            problems.append(f"account_id {self.account_id!r} is not a 12 digit AWS account id")
        if not self.role_name:
            problems.append("role_name (NUKE_ROLE_NAME) is not set")
        if not self.regions:
            problems.append("regions (REGIONS) is not set")
        if not self.template_path:
            problems.append("template_path (CONFIG_TEMPLATE) is not set")
        if not self.protection_parameter:
            problems.append("protection_parameter (PROTECTION_PARAMETER) is empty")
        if self.max_jobs < 1:
            problems.append(f"max_jobs must be at least 1, got {self.max_jobs}")
        if self.refresh_threshold < 0:
            problems.append(f"refresh_threshold must not be negative, got {self.refresh_threshold}")
        if self.attempt < 1 or self.attempt > self.max_attempts:
            problems.append(f"attempt {self.attempt} is outside 1..{self.max_attempts}")
        for pattern in self.exclude_bucket_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                problems.append(f"bucket exclusion pattern {pattern!r} is invalid: {e}")
        if problems:
            raise ConfigurationError("; ".join(problems))

    def compiled_bucket_patterns(self) -> List[Pattern]:
        return [re.compile(p) for p in self.exclude_bucket_patterns]

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


# Environment variable -> (field, converter)
ENV_FIELDS = {
    "ACCOUNT_ID": ("account_id", str),
    "NUKE_ROLE_NAME": ("role_name", str),
    "AWS_PARTITION": ("partition", str),
    "REGIONS": ("regions", "list"),
    "EXCLUDE_BUCKET_PREFIXES": ("exclude_bucket_patterns", "list"),
    "PROTECTION_PARAMETER": ("protection_parameter", str),
    "CONFIG_TEMPLATE": ("template_path", str),
    "WORK_DIR": ("work_dir", str),
    "MAX_JOBS": ("max_jobs", int),
    "REFRESH_THRESHOLD": ("refresh_threshold", int),
    "SESSION_NAME": ("session_label", str),
    "AWS_NUKE_BINARY": ("nuke_binary", str),
    "EXCLUDE_RESOURCE_TYPES": ("exclude_resource_types", "list"),
    "ATTEMPT": ("attempt", int),
    "MAX_ATTEMPTS": ("max_attempts", int),
    "MEMORY_MIB": ("memory_mib", int),
    "DRY_RUN": ("dry_run", "bool"),
    "RESULT_FILE": ("result_file", str),
    "JSON_LOGS": ("json_logs", "bool"),
    "LOG_VERBOSITY": ("verbosity", int),
}


def split_list(value: str) -> List[str]:
    """Split a comma-delimited value, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _convert(name: str, raw: str, converter: Any) -> Any:
    if converter == "list":
        return split_list(raw)
    if converter == "bool":
        return _parse_bool(raw)
    try:
        return converter(raw)
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not a valid value")


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load config from an optional YAML file, then apply environment overrides.

    Args:
        path: Path to YAML config file. If None, starts from defaults.
        environ: Environment mapping, ``os.environ`` when omitted.

    Returns:
        Config instance (not yet validated)

    Raises:
        ConfigurationError: If the file is missing, invalid YAML, or an
            environment value cannot be converted
    """
    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Config file {path} is not valid YAML: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

    config = _parse_config(data)
    apply_environment(config, os.environ if environ is None else environ)
    return config


def apply_environment(config: Config, environ: Mapping[str, str]) -> None:
    for name, (attr, converter) in ENV_FIELDS.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        setattr(config, attr, _convert(name, raw, converter))


def _parse_config(data: Dict[str, Any]) -> Config:
    """Parse config dict into Config dataclass."""
    known = set(Config.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {', '.join(unknown)}")

    values = dict(data)
    for key in ("regions", "exclude_bucket_patterns", "exclude_resource_types"):
        if isinstance(values.get(key), str):
            values[key] = split_list(values[key])
    if values.get("account_id") is not None:
        values["account_id"] = str(values["account_id"])
    return Config(**values)
