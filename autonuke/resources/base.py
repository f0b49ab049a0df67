import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from autonuke.core.config import Config
from autonuke.core.credentials import LeaseManager


class Outcome(str, Enum):
    DISABLED = "disabled"
    DRAINED = "drained"
    FAILED_IGNORED = "failed-ignored"


@dataclass(frozen=True)
class PreCleanupUnit:
    region: str
    kind: str
    name: str
    outcome: Outcome
    message: str = ''


class Report:
    """Thread-safe record of what each phase did, keyed by resource type."""

    def __init__(self):
        self._lock = threading.Lock()
        self.entries: Dict[str, Dict[str, List[str]]] = {}
        self.units: List[PreCleanupUnit] = []

    def record(self, resource_type, resource_id, success, message=''):
        with self._lock:
            bucket = self.entries.setdefault(resource_type, {'deleted': [], 'failed': []})
            if success:
                bucket['deleted'].append(resource_id)
            else:
                bucket['failed'].append(f"{resource_id} ({message})" if message else resource_id)

    def add_unit(self, unit: PreCleanupUnit):
        with self._lock:
            self.units.append(unit)

    def failed(self, resource_type) -> List[str]:
        return self.entries.get(resource_type, {}).get('failed', [])

    def deleted(self, resource_type) -> List[str]:
        return self.entries.get(resource_type, {}).get('deleted', [])

    def summary(self) -> Dict[str, Dict[str, int]]:
        return {k: {'deleted': len(v['deleted']), 'failed': len(v['failed'])} for k, v in self.entries.items()}


class ResourceCleaner(ABC):
    """A pre-nuke cleanup step run with the target-role lease."""

    resource_type = ''

    def __init__(self, leases: LeaseManager, config: Config, report: Report):
        self.leases = leases
        self.config = config
        self.report = report

    def _client(self, service, region=None):
        # Renew first so a long loop never starts a call on an expiring lease
        lease = self.leases.renew_if_needed()
        return lease.session(region).client(service)

    def _record_result(self, resource_id, success, message=''):
        if self.config.dry_run:
            return
        self.report.record(self.resource_type, resource_id, success, message)

    def _record_unit(self, region, kind, name, outcome, message=''):
        if self.config.dry_run:
            return
        self.report.add_unit(PreCleanupUnit(region, kind, name, outcome, message))

    @abstractmethod
    def cleanup(self, region: Optional[str] = None):
        pass
