#!/usr/bin/env python3
"""
blobcheck CLI.

Validates that an S3-compatible object store works as a CockroachDB
backup/restore destination: discovers the connection parameters the
provider needs, runs a full backup/restore cycle and reports per-node
network statistics.

Usage:
    blobcheck s3 --endpoint https://s3.example.com --path bucket/folder
    blobcheck s3 --uri 's3://bucket/folder?AWS_REGION=us-east-1'
    blobcheck s3 --endpoint localhost:9000 --path bucket --guess -v
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

import boto3
import psycopg
from botocore.exceptions import BotoCoreError, ClientError

from blobcheck.config import Env, load_config_from_env, load_config_from_file
from blobcheck.discovery import discover
from blobcheck.errors import BlobcheckError, CleanupError
from blobcheck.report import print_report, report_to_json
from blobcheck.stopper import Stopper
from blobcheck.validator import Report, Validator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blobcheck",
        description="blobcheck validates backup/restore operation against blob storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  AWS_ACCESS_KEY_ID       Access key ID (required)
  AWS_SECRET_ACCESS_KEY   Secret access key (required)
  AWS_SESSION_TOKEN       Session token (optional)
  AWS_REGION              Region name (default: aws-global)
  BLOBCHECK_DB, BLOBCHECK_ENDPOINT, BLOBCHECK_PATH, BLOBCHECK_URI,
  BLOBCHECK_WORKERS, BLOBCHECK_WORKLOAD_DURATION
                          Defaults for the matching options
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    s3 = subparsers.add_parser("s3", help="perform validation of a s3 object store")
    s3.add_argument("--db", dest="database_url", help="PostgreSQL connection URL")
    s3.add_argument("--endpoint", "-e", help="http endpoint")
    s3.add_argument("--path", "-p", help="destination path (e.g. bucket/folder)")
    s3.add_argument("--uri", help="S3 URI (instead of --endpoint and --path)")
    s3.add_argument("--workers", type=int, help="number of concurrent workers (default: 5)")
    s3.add_argument(
        "--workload-duration",
        type=float,
        help="duration of the workload in seconds (default: 5)",
    )
    s3.add_argument(
        "--guess",
        action="store_true",
        help=(
            "perform a short test to guess suggested parameters: it only requires "
            "access to the bucket; it does not run a backup/restore cycle"
        ),
    )
    s3.add_argument("--config", "-c", help="Path to configuration file (YAML or JSON)")
    s3.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    s3.add_argument(
        "--verbosity",
        "-v",
        action="count",
        default=0,
        help="increase logging verbosity (-v debug, -vv also logs S3 requests)",
    )
    return parser


def build_env(args: argparse.Namespace) -> Env:
    """Layer defaults, config file, BLOBCHECK_* variables and flags."""
    if args.config:
        env = load_config_from_file(args.config)
    else:
        env = Env()
    env = load_config_from_env(env)

    for name in ("database_url", "endpoint", "path", "uri", "workers", "workload_duration"):
        value = getattr(args, name)
        if value is not None:
            setattr(env, name, value)
    if args.guess:
        env.guess = True
    if args.verbosity > 1:
        env.verbose = True

    env.validate()
    return env


def install_signal_handlers(stopper: Stopper) -> None:
    def handle(signum, frame):
        logger.warning(f"Received signal {signum}, stopping")
        stopper.stop()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def run_s3(env: Env, stopper: Stopper) -> Optional[Report]:
    """
    Discover working parameters and, unless guessing, run the validation.

    Returns:
        The report, or None if the run was cancelled
    """
    storage = discover(env)
    if env.guess:
        return Report(suggested_params=storage.display_params())

    validator = Validator(env, storage)
    try:
        return validator.validate(stopper)
    finally:
        try:
            validator.clean()
        except (CleanupError, psycopg.Error) as e:
            logger.error(f"Cleanup failed: {e}")
        finally:
            validator.close()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbosity > 0:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.verbosity > 1:
        boto3.set_stream_logger("botocore", logging.DEBUG)

    try:
        env = build_env(args)
        stopper = Stopper()
        install_signal_handlers(stopper)
        report = run_s3(env, stopper)
    except (BlobcheckError, BotoCoreError, ClientError, psycopg.Error) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if report is None:
        print("Validation cancelled")
        sys.exit(1)

    if args.output == "json":
        print(report_to_json(report))
    else:
        print_report(report)
    sys.exit(0)


if __name__ == "__main__":
    main()
