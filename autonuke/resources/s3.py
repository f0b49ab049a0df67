"""Bucket drain engine.

aws-nuke deletes versioned objects one request at a time and regularly times
out on large buckets. Buckets are emptied here first, with 1000-key batch
deletes and several buckets in parallel, then removed.
"""
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Union, Pattern

from botocore.exceptions import BotoCoreError, ClientError

from autonuke.core.errors import TransientResourceError
from autonuke.core.retry import retry_delete, error_code
from autonuke.resources.base import ResourceCleaner

PAGE_SIZE = 1000
MISSING_BUCKET_CODES = ('NoSuchBucket',)


class BucketAction(str, Enum):
    DRAIN = "drain"
    SKIP = "skip"


@dataclass
class DrainReport:
    drained: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def classify(name: str, exclusion_patterns: Sequence[Union[str, Pattern]]) -> BucketAction:
    """Skip a bucket when any exclusion pattern matches anywhere in its name."""
    for pattern in exclusion_patterns:
        if re.search(pattern, name):
            return BucketAction.SKIP
    return BucketAction.DRAIN


class BucketDrainer(ResourceCleaner):
    resource_type = 'S3 Buckets'

    def cleanup(self, region=None):
        # S3 bucket listing is account wide; region is ignored
        return self.drain_all()

    def list_buckets(self) -> List[str]:
        s3 = self._client('s3')
        return [b['Name'] for b in s3.list_buckets().get('Buckets', [])]

    def drain_all(self) -> DrainReport:
        report = DrainReport()
        try:
            names = self.list_buckets()
        except (ClientError, BotoCoreError) as e:
            logging.error('Error listing S3 buckets: %s', e)
            return report

        patterns = self.config.compiled_bucket_patterns()
        width = self.config.max_jobs
        slots = threading.BoundedSemaphore(width)
        logging.info(f"Draining up to {len(names)} bucket(s) with {width} worker(s)")

        with ThreadPoolExecutor(max_workers=width, thread_name_prefix='drain') as executor:
            future_map = {}
            for name in names:
                if classify(name, patterns) is BucketAction.SKIP:
                    logging.info(f"Skip bucket: {name}", extra={'bucket': name})
                    report.skipped.append(name)
                    continue
                # blocks until a running drain finishes
                slots.acquire()
                future = executor.submit(self.drain, name)
                future.add_done_callback(lambda _: slots.release())
                future_map[future] = name

            for fut in as_completed(future_map):
                name = future_map[fut]
                try:
                    fut.result()
                    report.drained.append(name)
                except Exception as ex:
                    logging.error(f"Failed to drain bucket {name}: {ex}", extra={'bucket': name})
                    report.failed.append(name)
                    self._record_result(name, False, str(ex))

        logging.info(f"All buckets have been processed: {len(report.drained)} drained, "
                     f"{len(report.skipped)} skipped, {len(report.failed)} failed")
        return report

    def drain(self, name: str) -> None:
        """Empty and delete one bucket. A bucket that no longer exists is a no-op.

        Raises:
            TransientResourceError: if listing, deleting or removing fails
        """
        logging.info(f"Deleting all versions and delete markers in bucket: {name}", extra={'bucket': name})
        try:
            lease, s3 = self._empty_versions(name)
            s3 = self._abort_multipart_uploads(name, lease, s3)
            if self.config.dry_run:
                logging.info(f"[Dry-Run] Would delete bucket {name}")
                return
            retry_delete(lambda: s3.delete_bucket(Bucket=name), f"Delete S3 bucket {name}")
        except ClientError as e:
            if error_code(e) in MISSING_BUCKET_CODES:
                logging.info(f"Bucket {name} no longer exists", extra={'bucket': name})
                return
            raise TransientResourceError(name, str(e))
        self._record_result(name, True)
        logging.info(f"Successfully deleted bucket: {name}", extra={'bucket': name})

    def _empty_versions(self, name):
        params = {'Bucket': name, 'MaxKeys': PAGE_SIZE}
        lease, s3 = None, None
        deleted = 0
        while True:
            lease, s3 = self._client_for(lease, s3)
            page = s3.list_object_versions(**params)
            batch = [{'Key': v['Key'], 'VersionId': v['VersionId']} for v in page.get('Versions', [])]
            batch += [{'Key': d['Key'], 'VersionId': d['VersionId']} for d in page.get('DeleteMarkers', [])]
            if batch:
                self._delete_batch(s3, name, batch)
                deleted += len(batch)
            if not page.get('IsTruncated'):
                break
            params['KeyMarker'] = page.get('NextKeyMarker')
            if page.get('NextVersionIdMarker'):
                params['VersionIdMarker'] = page['NextVersionIdMarker']
            else:
                params.pop('VersionIdMarker', None)
        logging.info(f"All objects and versions deleted from bucket: {name} ({deleted} entries)",
                     extra={'bucket': name})
        return lease, s3

    def _client_for(self, lease, s3):
        current = self.leases.renew_if_needed()
        if current is not lease or s3 is None:
            s3 = current.session().client('s3')
        return current, s3

    def _delete_batch(self, s3, name, batch):
        if self.config.dry_run:
            logging.info(f"[Dry-Run] Would delete {len(batch)} objects in {name}")
            return
        logging.debug(f"Batch deleting {len(batch)} objects/versions from {name}")
        response = retry_delete(
            lambda: s3.delete_objects(Bucket=name, Delete={'Objects': batch, 'Quiet': True}),
            f"Deleting objects in {name}",
        )
        errors = (response or {}).get('Errors', [])
        if errors:
            first = errors[0]
            logging.warning(f"{len(errors)} object(s) in {name} could not be deleted, "
                            f"first: {first.get('Key')} {first.get('Code')} {first.get('Message')}",
                            extra={'bucket': name})

    def _abort_multipart_uploads(self, name, lease, s3):
        params = {'Bucket': name, 'MaxUploads': PAGE_SIZE}
        while True:
            lease, s3 = self._client_for(lease, s3)
            page = s3.list_multipart_uploads(**params)
            for upload in page.get('Uploads', []):
                key, upload_id = upload['Key'], upload['UploadId']
                if self.config.dry_run:
                    logging.info(f"[Dry-Run] Would abort MPU for {key}")
                    continue
                retry_delete(lambda: s3.abort_multipart_upload(Bucket=name, Key=key, UploadId=upload_id),
                             f"Abort MPU for {key}")
            if not page.get('IsTruncated'):
                break
            params['KeyMarker'] = page.get('NextKeyMarker')
            params['UploadIdMarker'] = page.get('NextUploadIdMarker')
        return s3
