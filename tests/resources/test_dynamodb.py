from botocore.exceptions import ClientError, EndpointConnectionError

from autonuke.core.config import Config
from autonuke.resources.base import Outcome
from autonuke.resources.dynamodb import TableProtectionCleaner


def tables(dynamodb, names):
    dynamodb.get_paginator.return_value.paginate.return_value = [{'TableNames': names}]


def test_disables_deletion_protection(leases, aws_client, mock_config, report):
    dynamodb = aws_client
    tables(dynamodb, ['orders'])
    dynamodb.describe_table.return_value = {'Table': {'DeletionProtectionEnabled': True}}

    TableProtectionCleaner(leases, mock_config, report).cleanup('eu-west-1')

    dynamodb.update_table.assert_called_once_with(TableName='orders', DeletionProtectionEnabled=False)
    assert [u.outcome for u in report.units] == [Outcome.DISABLED]
    assert report.units[0].kind == 'table'
    # the table itself is left for aws-nuke
    dynamodb.delete_table.assert_not_called()


def test_unprotected_table_is_left_alone(leases, aws_client, mock_config, report):
    dynamodb = aws_client
    tables(dynamodb, ['orders'])
    dynamodb.describe_table.return_value = {'Table': {'DeletionProtectionEnabled': False}}

    TableProtectionCleaner(leases, mock_config, report).cleanup('eu-west-1')

    dynamodb.update_table.assert_not_called()


def test_failure_on_one_table_does_not_stop_the_next(leases, aws_client, mock_config, report):
    dynamodb = aws_client
    tables(dynamodb, ['first', 'second'])
    dynamodb.describe_table.return_value = {'Table': {'DeletionProtectionEnabled': True}}
    dynamodb.update_table.side_effect = [
        ClientError({'Error': {'Code': 'ResourceInUseException'}}, 'UpdateTable'),
        {},
    ]

    TableProtectionCleaner(leases, mock_config, report).cleanup('eu-west-1')

    assert dynamodb.update_table.call_count == 2
    dynamodb.update_table.assert_called_with(TableName='second', DeletionProtectionEnabled=False)
    outcomes = {u.name: u.outcome for u in report.units}
    assert outcomes == {'first': Outcome.FAILED_IGNORED, 'second': Outcome.DISABLED}


def test_listing_failure_is_swallowed(leases, aws_client, mock_config, report):
    aws_client.get_paginator.return_value.paginate.side_effect = ClientError(
        {'Error': {'Code': 'AccessDeniedException'}}, 'ListTables')

    TableProtectionCleaner(leases, mock_config, report).cleanup('eu-west-1')

    aws_client.update_table.assert_not_called()


def test_dry_run(leases, aws_client, report):
    tables(aws_client, ['orders'])
    aws_client.describe_table.return_value = {'Table': {'DeletionProtectionEnabled': True}}

    TableProtectionCleaner(leases, Config(dry_run=True), report).cleanup('eu-west-1')

    aws_client.update_table.assert_not_called()


def test_client_created_for_region(leases, aws_client, mock_config, report):
    tables(aws_client, [])

    TableProtectionCleaner(leases, mock_config, report).cleanup('ap-southeast-2')

    leases.renew_if_needed.return_value.session.assert_called_with('ap-southeast-2')


def test_connection_error_on_one_table_does_not_stop_the_next(leases, aws_client, mock_config, report):
    dynamodb = aws_client
    tables(dynamodb, ['first', 'second'])
    dynamodb.describe_table.side_effect = [
        EndpointConnectionError(endpoint_url='https://dynamodb.eu-west-1.amazonaws.com'),
        {'Table': {'DeletionProtectionEnabled': True}},
    ]

    TableProtectionCleaner(leases, mock_config, report).cleanup('eu-west-1')

    dynamodb.update_table.assert_called_once_with(TableName='second', DeletionProtectionEnabled=False)
    outcomes = {u.name: u.outcome for u in report.units}
    assert outcomes == {'first': Outcome.FAILED_IGNORED, 'second': Outcome.DISABLED}
