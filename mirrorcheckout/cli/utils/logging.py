import logging
import os
import sys
from contextlib import contextmanager
from typing import Iterator, Set


logger = logging.getLogger("mirrorcheckout")

MASK = "***"

_secrets: Set[str] = set()


def in_github_actions() -> bool:
    return os.environ.get("GITHUB_ACTIONS") == "true"


def _workflow_command(command: str, value: str = "") -> None:
    sys.stdout.write(f"::{command}::{value}\n")
    sys.stdout.flush()


def register_secret(value: str) -> None:
    """
    Register a value that must never appear in log output.

    On GitHub Actions the runner is asked to mask it as well, which also
    covers the output of child processes.
    """
    if not value or value in _secrets:
        return
    _secrets.add(value)
    if in_github_actions():
        _workflow_command("add-mask", value)


def mask_secrets(text: str) -> str:
    # Longest first, so a secret containing another one is masked whole
    for secret in sorted(_secrets, key=len, reverse=True):
        text = text.replace(secret, MASK)
    return text


class SecretMaskingFilter(logging.Filter):
    """Replaces registered secrets in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _secrets:
            return True
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg = masked
            record.args = ()
        return True


class WorkflowCommandFormatter(logging.Formatter):
    """Formats warnings and errors as GitHub Actions workflow commands."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.ERROR:
            return f"::error::{message}"
        if record.levelno >= logging.WARNING:
            return f"::warning::{message}"
        if record.levelno <= logging.DEBUG:
            return f"::debug::{message}"
        return message


@contextmanager
def log_group(title: str) -> Iterator[None]:
    """Fold the output of a step, when the runner supports it."""
    if not in_github_actions():
        logger.info(title)
        yield
        return

    _workflow_command("group", title)
    try:
        yield
    finally:
        _workflow_command("endgroup")


def configure_logging(debug: bool):
    """
    Configures the logging system based on the debug flag.
    """
    handler = logging.StreamHandler(sys.stdout)
    if in_github_actions():
        formatter: logging.Formatter = WorkflowCommandFormatter("%(message)s")
    else:
        formatter = logging.Formatter("%(message)s")
    handler.setFormatter(formatter)
    handler.addFilter(SecretMaskingFilter())

    log_level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(log_level)

    if not logger.hasHandlers():
        logger.addHandler(handler)
