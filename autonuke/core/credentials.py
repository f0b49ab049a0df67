"""Ambient and cross-account credential scopes.

Two identities are in play during an invocation and are never mixed:

* ``AmbientIdentity`` is the task's own execution role. It reads the
  protection list, assumes the target role, and is what aws-nuke is started
  with, since aws-nuke assumes the target role itself and keeps its own
  credentials fresh.
* ``LeaseManager`` holds the assumed target-role credentials used for
  draining buckets and the pre-cleanup phase.

``os.environ`` is never modified. A refresh swaps the manager's reference to
a new immutable ``CredentialLease`` under a lock, so a reader always sees a
complete key/secret/token triple.
"""
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from autonuke.core.errors import RoleAssumptionError

CREDENTIAL_ENV_VARS = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccountTarget:
    account_id: str
    role_name: str
    partition: str = "aws"

    @property
    def role_arn(self) -> str:
        return f"arn:{self.partition}:iam::{self.account_id}:role/{self.role_name}"


@dataclass(frozen=True)
class CredentialLease:
    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: datetime

    def remaining_seconds(self, now: datetime) -> float:
        return (self.expiration - now).total_seconds()

    def session(self, region_name: Optional[str] = None) -> boto3.Session:
        return boto3.Session(
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            aws_session_token=self.session_token,
            region_name=region_name,
        )

    def __repr__(self) -> str:
        return f"CredentialLease(access_key_id={self.access_key_id!r}, expiration={self.expiration.isoformat()})"


class AmbientIdentity:
    """The orchestrator's own identity, captured once at start."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, session_factory=boto3.Session):
        source = os.environ if environ is None else environ
        self._base_env: Dict[str, str] = dict(source)
        self._session_factory = session_factory

    def session(self, region_name: Optional[str] = None) -> boto3.Session:
        return self._session_factory(region_name=region_name)

    def environment(self) -> Dict[str, str]:
        """Environment for a child process running as the ambient identity.

        Credential variables are exactly those present at start; any other
        credential variable is dropped.
        """
        env = dict(self._base_env)
        for name in CREDENTIAL_ENV_VARS:
            if name not in self._base_env:
                env.pop(name, None)
        return env

    def describe(self) -> str:
        """Caller identity and region, for diagnosing store failures."""
        session = self.session()
        try:
            identity = session.client('sts').get_caller_identity()
            who = identity.get('Arn', 'unknown')
        except (ClientError, BotoCoreError) as e:
            who = f"unknown ({e})"
        return f"caller={who} region={session.region_name}"


class LeaseManager:
    """Issues and proactively renews the target-role lease.

    ``renew_if_needed`` is meant to be called at every loop boundary before a
    network call, not after a call fails with expired credentials.
    """

    def __init__(self, ambient: AmbientIdentity, target: AccountTarget, session_label: str,
                 threshold: int = 300, duration_seconds: Optional[int] = None,
                 clock: Clock = utcnow):
        self.ambient = ambient
        self.target = target
        self.session_label = session_label
        self.threshold = threshold
        self.duration_seconds = duration_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._lease: Optional[CredentialLease] = None
        self.refresh_count = 0

    def acquire(self) -> CredentialLease:
        with self._lock:
            self._lease = self._assume_role()
            return self._lease

    def current(self) -> CredentialLease:
        lease = self._lease
        if lease is None:
            raise RuntimeError("No lease acquired yet")
        return lease

    def needs_renewal(self, lease: CredentialLease, threshold: Optional[int] = None) -> bool:
        limit = self.threshold if threshold is None else threshold
        return lease.remaining_seconds(self.clock()) <= limit

    def renew_if_needed(self, threshold: Optional[int] = None) -> CredentialLease:
        """Return a lease with more than ``threshold`` seconds left.

        Raises:
            RoleAssumptionError: if the refresh itself fails
        """
        with self._lock:
            lease = self._lease
            if lease is None:
                raise RuntimeError("No lease acquired yet")
            if self.needs_renewal(lease, threshold):
                remaining = int(lease.remaining_seconds(self.clock()))
                logging.info(f"Refreshing credentials (time left: {remaining} seconds)")
                self._lease = self._assume_role()
                self.refresh_count += 1
            return self._lease

    def session(self, region_name: Optional[str] = None) -> boto3.Session:
        return self.current().session(region_name)

    def _assume_role(self) -> CredentialLease:
        role_arn = self.target.role_arn
        logging.info(f"Assuming role: {role_arn}")
        params = {'RoleArn': role_arn, 'RoleSessionName': self.session_label}
        if self.duration_seconds:
            params['DurationSeconds'] = self.duration_seconds
        try:
            sts = self.ambient.session().client('sts')
            creds = sts.assume_role(**params)['Credentials']
        except ClientError as e:
            raise RoleAssumptionError(role_arn, e.response.get('Error', {}).get('Message', str(e)))
        except BotoCoreError as e:
            raise RoleAssumptionError(role_arn, str(e))

        expiration = creds['Expiration']
        if isinstance(expiration, str):
            expiration = datetime.fromisoformat(expiration.replace('Z', '+00:00'))
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)

        lease = CredentialLease(
            access_key_id=creds['AccessKeyId'],
            secret_access_key=creds['SecretAccessKey'],
            session_token=creds['SessionToken'],
            expiration=expiration,
        )
        logging.info(f"Role assumed successfully. Credentials valid until {expiration.isoformat()}")
        return lease
