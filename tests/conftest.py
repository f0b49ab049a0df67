from unittest.mock import MagicMock

import pytest

from autonuke.core.config import Config
from autonuke.resources.base import Report


@pytest.fixture
def aws_client():
    return MagicMock()


@pytest.fixture
def leases(aws_client):
    """A lease manager whose lease hands out ``aws_client`` for every service."""
    lease = MagicMock()
    lease.session.return_value.client.return_value = aws_client
    manager = MagicMock()
    manager.renew_if_needed.return_value = lease
    manager.current.return_value = lease
    return manager


@pytest.fixture
def mock_config():
    return Config(
        account_id='111111111111',
        role_name='NukeRole',
        regions=['eu-west-1'],
        template_path='/tmp/config.yaml.template',
    )


@pytest.fixture
def report():
    return Report()
