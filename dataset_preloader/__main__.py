"""
Entry point for the dataset_preloader component.
"""

import argparse
import logging
import sys

from .application.domain import PrepareOutcome
from .application.exceptions import *
from .infrastructure.containers import Container
from .settings import settings

logger = logging.getLogger(__name__)

# Most specific classes first
_HINTS = (
    (ConfigurationError, "fix config/settings.toml and try again"),
    (LockError, "wait for the other run to finish, then re-run with --prepare"),
    (PathTraversalError, "the archive is unsafe; check the configured source_url"),
    (StorageError, "check disk space and permissions, then re-run with --prepare"),
    (NetworkError, "check your connection, then re-run with --prepare"),
    (FetchTimeoutError, "raise preloader.read_timeout or re-run with --prepare"),
    (ProtocolError, "check the configured source_url"),
    (ChecksumMismatchError, "check preloader.sha256 against the published digest"),
    (IntegrityError, "the download was incomplete; re-run with --prepare"),
    (CorruptArchiveError, "the archive is damaged; re-run with --prepare"),
    (PipelineCancelled, "re-run with --prepare to start over"),
)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level)


def hint_for(error: PipelineError) -> str:
    """Returns the corrective action suggested for an error."""
    for error_type, hint in _HINTS:
        if isinstance(error, error_type):
            return hint
    return "re-run with --prepare"


def run_application(args: argparse.Namespace):
    """Wires and runs the application using the DI container."""

    setup_logging(level=settings.get("logging.level", "INFO"))
    container = Container()

    try:
        preparation_service = container.preparation_service()
        outcome = preparation_service.prepare(verbose=args.debug or None)
    except PipelineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        logger.error(f"Hint: {hint_for(e)}")
        sys.exit(1)
    finally:
        container.shutdown_resources()

    if outcome is PrepareOutcome.ALREADY_PRESENT:
        logger.info("The dataset is already present, nothing to do.")
    else:
        logger.info("The dataset is ready.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Downloads and extracts the training dataset"
    )

    parser.add_argument(
        "-p",
        "--prepare",
        action="store_true",
        help="Download and extract the dataset archive if it is not present.",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Verbose output: detail events and a download progress bar.",
    )

    cli_args = parser.parse_args()

    if not cli_args.prepare:
        parser.print_help()
        sys.exit(0)

    run_application(cli_args)
