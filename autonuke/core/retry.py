import time
import random
import logging
from botocore.exceptions import ClientError

from autonuke.core.errors import RetryExhaustedError

THROTTLING_CODES = (
    'Throttling',
    'ThrottlingException',
    'RequestLimitExceeded',
    'SlowDown',
    'TooManyRequestsException',
)

MAX_DELAY = 60


def error_code(exc: ClientError) -> str:
    return exc.response.get('Error', {}).get('Code', '')


def retry_delete(operation, description, max_attempts=8, base_delay=1.2):
    """Run ``operation`` and retry it only while AWS throttles the call.

    Any other ``ClientError`` is raised immediately so the caller decides
    whether the failure is fatal or can be skipped.
    """
    for attempt in range(max_attempts):
        try:
            return operation()
        except ClientError as e:
            code = error_code(e)
            if code not in THROTTLING_CODES:
                raise
            jitter = random.uniform(0.5, 1.5)
            delay = min(base_delay * (2 ** attempt) * jitter, MAX_DELAY)
            logging.warning(f'{description} throttled ({code}); retrying in {delay:.2f}s')
            time.sleep(delay)
    raise RetryExhaustedError(f"Max retries ({max_attempts}) exceeded for {description}")
