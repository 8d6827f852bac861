"""Logging setup shared by the CLI and the indexer."""

import logging
import sys
from typing import Optional

logger = logging.getLogger("cearch")

_FORMAT = "%(levelname)s: %(message)s"
_handler: Optional[logging.Handler] = None


def configure_logging(verbose: bool = False, level: Optional[str] = None) -> None:
    """
    Send log records to stderr.

    Args:
        verbose: Force DEBUG output.
        level: Level name from the config file, used when not verbose.
    """
    global _handler

    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelName((level or "WARNING").upper())
        if not isinstance(resolved, int):
            resolved = logging.WARNING

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(_handler)
    root.setLevel(resolved)

    # Model loading libraries are chatty at INFO.
    for noisy in ("sentence_transformers", "transformers", "huggingface_hub", "urllib3", "filelock"):
        logging.getLogger(noisy).setLevel(max(resolved, logging.WARNING))
