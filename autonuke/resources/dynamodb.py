import logging
from botocore.exceptions import BotoCoreError, ClientError
from autonuke.resources.base import ResourceCleaner, Outcome
from autonuke.core.errors import RetryExhaustedError
from autonuke.core.retry import retry_delete


class TableProtectionCleaner(ResourceCleaner):
    """Turns off DynamoDB deletion protection so aws-nuke can delete tables.

    Tables themselves are left for aws-nuke.
    """
    resource_type = 'DynamoDB Deletion Protection'

    def cleanup(self, region=None):
        self.disable_deletion_protection(region)

    def list_tables(self, region):
        dynamodb = self._client('dynamodb', region)
        tables = []
        for page in dynamodb.get_paginator('list_tables').paginate():
            tables.extend(page.get('TableNames', []))
        return tables

    def disable_deletion_protection(self, region):
        try:
            tables = self.list_tables(region)
        except (ClientError, BotoCoreError) as e:
            logging.error(f"[{region}] Error listing DynamoDB tables: {e}", extra={'region': region})
            return
        if not tables:
            logging.info(f"[{region}] No DynamoDB tables found", extra={'region': region})
            return

        for table in tables:
            try:
                self._disable(region, table)
            except (ClientError, BotoCoreError, RetryExhaustedError) as e:
                logging.warning(f"[{region}] Disabling deletion protection failed for {table} (continuing): {e}",
                                extra={'region': region, 'resource_id': table})
                self._record_result(f"{table} ({region})", False, str(e))
                self._record_unit(region, 'table', table, Outcome.FAILED_IGNORED, str(e))

    def _disable(self, region, table):
        dynamodb = self._client('dynamodb', region)
        described = dynamodb.describe_table(TableName=table)['Table']
        if not described.get('DeletionProtectionEnabled'):
            logging.debug(f"[{region}] Deletion protection already off for {table}")
            self._record_unit(region, 'table', table, Outcome.DISABLED)
            return
        if self.config.dry_run:
            logging.info(f"[Dry-Run] Would disable deletion protection for DynamoDB table {table}")
            return
        logging.info(f"[{region}] Disabling deletion protection for DynamoDB table: {table}",
                     extra={'region': region, 'resource_id': table, 'action': 'update_table'})
        retry_delete(lambda: dynamodb.update_table(TableName=table, DeletionProtectionEnabled=False),
                     f"Disable deletion protection for {table}")
        self._record_result(f"{table} ({region})", True)
        self._record_unit(region, 'table', table, Outcome.DISABLED)
