"""Protection gate: refuse to touch accounts on the protected list."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from botocore.exceptions import BotoCoreError, ClientError

from autonuke.core.errors import ProtectionStoreUnavailable


class GateDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class ProtectionList:
    accounts: Tuple[str, ...]

    @classmethod
    def parse(cls, value: str) -> "ProtectionList":
        tokens = [token.strip() for token in value.split(",") if token.strip()]
        # keep parameter order, drop duplicates
        return cls(tuple(dict.fromkeys(tokens)))

    def __contains__(self, account_id: str) -> bool:
        return account_id in self.accounts

    def __len__(self) -> int:
        return len(self.accounts)


class ProtectionGate:
    """Reads the protected account list from SSM Parameter Store.

    The list is read on every check. It fails closed: if the parameter
    cannot be read, or holds no account ids, the invocation is aborted
    instead of treating the list as empty.
    """

    def __init__(self, ambient, parameter_name: str):
        self.ambient = ambient
        self.parameter_name = parameter_name

    def load(self) -> ProtectionList:
        try:
            ssm = self.ambient.session().client('ssm')
            response = ssm.get_parameter(Name=self.parameter_name, WithDecryption=True)
            value = response['Parameter']['Value']
        except (ClientError, BotoCoreError, KeyError) as e:
            logging.error(f"SSM parameter '{self.parameter_name}' could not be read: {e}")
            logging.error(f"Current identity: {self.ambient.describe()}")
            raise ProtectionStoreUnavailable(f"Cannot read protection list {self.parameter_name}: {e}")

        protected = ProtectionList.parse(value or "")
        if not protected:
            raise ProtectionStoreUnavailable(
                f"Protection list {self.parameter_name} is empty; it must hold at least one account ID"
            )
        logging.info(f"Fetched protection list with {len(protected)} account(s)")
        return protected

    @staticmethod
    def evaluate(account_id: str, protected: ProtectionList) -> GateDecision:
        if account_id in protected:
            logging.warning(f"Account {account_id} is protected and cannot be nuked",
                            extra={'account_id': account_id, 'phase': 'gate'})
            return GateDecision.DENY
        return GateDecision.ALLOW

    def check(self, account_id: str) -> GateDecision:
        return self.evaluate(account_id, self.load())
