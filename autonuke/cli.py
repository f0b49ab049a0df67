"""autonuke CLI entry point."""
import argparse
import logging
import sys

from autonuke.core.config import load_config, split_list
from autonuke.core.errors import ConfigurationError, ProtectionStoreUnavailable
from autonuke.core.logging import bind_context, get_run_id, setup_logging
from autonuke.core.result import ExecutionResult
from autonuke.orchestrator import Orchestrator

EXIT_STORE_UNAVAILABLE = 1
EXIT_CONFIGURATION = 2
EXIT_FATAL = 3


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='autonuke - drain, pre-clean and aws-nuke one AWS account',
        epilog='Every option can also be set through the environment (ACCOUNT_ID, NUKE_ROLE_NAME, REGIONS, ...).',
    )
    parser.add_argument('--config', '-c', help='Path to YAML config file')
    parser.add_argument('--account-id', help='Target account id')
    parser.add_argument('--role-name', help='Role to assume in the target account')
    parser.add_argument('--regions', help='Comma separated regions to clean')
    parser.add_argument('--template', help='Path to the aws-nuke config template')
    parser.add_argument('--exclude-bucket', action='append', default=None, metavar='PATTERN',
                        help='Regex of buckets to keep (repeatable)')
    parser.add_argument('--exclude-resource-type', action='append', default=None, metavar='TYPE',
                        help='aws-nuke resource type to exclude (repeatable)')
    parser.add_argument('--max-jobs', type=int, help='Buckets drained in parallel')
    parser.add_argument('--attempt', type=int, help='Attempt number given by the scheduler')
    parser.add_argument('--result-file', help='Write the classified result as JSON here')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Verbosity: -v=INFO, -vv=DEBUG')
    parser.add_argument('--json-logs', action='store_true',
                        help='Output logs in JSON format')
    parser.add_argument('--dry-run', action='store_true',
                        help='List what would be deleted; aws-nuke runs without --no-dry-run')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        setup_logging(1, False)
        logging.error(f"Configuration error: {e}")
        return EXIT_CONFIGURATION

    # CLI args override config and environment
    if args.account_id:
        config.account_id = args.account_id
    if args.role_name:
        config.role_name = args.role_name
    if args.regions:
        config.regions = split_list(args.regions)
    if args.template:
        config.template_path = args.template
    if args.exclude_bucket:
        config.exclude_bucket_patterns = args.exclude_bucket
    if args.exclude_resource_type:
        config.exclude_resource_types = args.exclude_resource_type
    if args.max_jobs is not None:
        config.max_jobs = args.max_jobs
    if args.attempt is not None:
        config.attempt = args.attempt
    if args.result_file:
        config.result_file = args.result_file
    if args.verbose:
        config.verbosity = args.verbose
    if args.json_logs:
        config.json_logs = True
    if args.dry_run:
        config.dry_run = True

    setup_logging(config.verbosity, config.json_logs)
    bind_context(config.account_id, config.attempt)
    logging.info(f"autonuke run_id={get_run_id()} account={config.account_id} "
                 f"attempt={config.attempt}/{config.max_attempts} dry_run={config.dry_run}")

    orchestrator = Orchestrator(config)
    try:
        result = orchestrator.run()
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        result = ExecutionResult.fatal(f"Configuration error: {e}", EXIT_CONFIGURATION)
    except ProtectionStoreUnavailable as e:
        logging.error(f"{e}. Exiting.")
        result = ExecutionResult.fatal(str(e), EXIT_STORE_UNAVAILABLE)
    except Exception as ex:
        logging.exception(f"Unexpected error during cleanup of account {config.account_id}: {ex}")
        result = ExecutionResult.fatal(f"{type(ex).__name__}: {ex}", EXIT_FATAL)

    payload = orchestrator.write_result(result)
    logging.info(f"Result: {result.kind.value} (exit code {result.exit_code})",
                 extra={'account_id': config.account_id, 'phase': 'result'})
    if payload['next_attempt']:
        logging.info(f"Next attempt: {payload['next_attempt']}")
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())
