import logging
from botocore.exceptions import BotoCoreError, ClientError
from autonuke.resources.base import ResourceCleaner, Outcome
from autonuke.core.errors import RetryExhaustedError
from autonuke.core.retry import retry_delete


class RecoveryPointCleaner(ResourceCleaner):
    """Deletes AWS Backup recovery points, which keep aws-nuke from removing vaults.

    Vaults themselves are left for aws-nuke.
    """
    resource_type = 'AWS Backup Recovery Points'

    def cleanup(self, region=None):
        self.delete_recovery_points(region)

    def list_vaults(self, region):
        backup = self._client('backup', region)
        vaults = []
        for page in backup.get_paginator('list_backup_vaults').paginate():
            vaults.extend(v['BackupVaultName'] for v in page.get('BackupVaultList', []))
        return vaults

    def delete_recovery_points(self, region):
        try:
            vaults = self.list_vaults(region)
        except (ClientError, BotoCoreError) as e:
            logging.error(f"[{region}] Error listing backup vaults: {e}", extra={'region': region})
            return

        for vault in vaults:
            logging.info(f"[{region}] Cleaning vault: {vault}", extra={'region': region, 'resource_id': vault})
            failures = self._drain_vault(region, vault)
            if failures:
                self._record_unit(region, 'backup-vault', vault, Outcome.FAILED_IGNORED,
                                  f"{failures} recovery point(s) not deleted")
            else:
                self._record_unit(region, 'backup-vault', vault, Outcome.DRAINED)

    def _drain_vault(self, region, vault):
        failures = 0
        backup = self._client('backup', region)
        try:
            arns = []
            paginator = backup.get_paginator('list_recovery_points_by_backup_vault')
            for page in paginator.paginate(BackupVaultName=vault):
                arns.extend(rp['RecoveryPointArn'] for rp in page.get('RecoveryPoints', []))
        except (ClientError, BotoCoreError) as e:
            logging.warning(f"[{region}] Error listing recovery points in {vault} (continuing): {e}")
            return 1

        for arn in arns:
            if self.config.dry_run:
                logging.info(f"[Dry-Run] Would delete recovery point {arn}")
                continue
            logging.info(f"[{region}] Deleting recovery point: {arn}",
                         extra={'region': region, 'resource_id': arn, 'action': 'delete_recovery_point'})
            try:
                retry_delete(lambda: backup.delete_recovery_point(BackupVaultName=vault, RecoveryPointArn=arn),
                             f"Delete recovery point {arn}")
                self._record_result(arn, True)
            except (ClientError, BotoCoreError, RetryExhaustedError) as e:
                logging.warning(f"[{region}] Failed to delete recovery point {arn} (continuing): {e}")
                self._record_result(arn, False, str(e))
                failures += 1
        return failures
