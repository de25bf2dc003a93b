"""Console logging setup shared by every entrypoint."""

import logging
import sys

from maintenance.observability.redaction import RedactSecretsFilter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# SDK loggers that are noisy at INFO/DEBUG.
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "pinecone")


def configure_logging(verbose: bool = False) -> None:
    """Install the stdout handler. Safe to call more than once."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for handler in logging.root.handlers:
        if not any(isinstance(f, RedactSecretsFilter) for f in handler.filters):
            handler.addFilter(RedactSecretsFilter())
