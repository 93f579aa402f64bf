"""
Scoped git credentials.

The token is installed as an extra HTTP authorization header (plus an
SSH-to-HTTPS URL rewrite) either in the global git configuration, so that
mirror and checkout operations are authenticated, or in the local
configuration of a checkout, so that later steps of the job keep working.

Global credentials are a resource: ``git_credentials`` installs them and
removes them on every exit path.
"""

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import urlparse

from mirrorcheckout.cli.utils.logging import register_secret
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.model.request import DEFAULT_SERVER_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialScope:
    """Global git configuration, or the local configuration of one checkout."""

    repo_dir: Optional[Path] = None

    @classmethod
    def global_scope(cls) -> "CredentialScope":
        return cls()

    @classmethod
    def local(cls, repo_dir: Path) -> "CredentialScope":
        return cls(repo_dir=Path(repo_dir))

    @property
    def is_global(self) -> bool:
        return self.repo_dir is None

    @property
    def selector(self) -> str:
        return "--global" if self.is_global else "--local"

    def __str__(self) -> str:
        return "global" if self.is_global else f"local ({self.repo_dir})"


def basic_credential(token: str) -> str:
    return base64.b64encode(f"x-access-token:{token}".encode("utf-8")).decode("ascii")


def extraheader_key(server_url: str = DEFAULT_SERVER_URL) -> str:
    return f"http.{server_url}/.extraheader"


def insteadof_key(server_url: str = DEFAULT_SERVER_URL) -> str:
    return f"url.{server_url}/.insteadOf"


def insteadof_value(server_url: str = DEFAULT_SERVER_URL) -> str:
    return f"git@{urlparse(server_url).netloc}:"


def configure_git_auth(
    runner: CommandRunner,
    token: str,
    scope: CredentialScope,
    server_url: str = DEFAULT_SERVER_URL,
) -> None:
    """
    Install the credential header and URL rewrite at the given scope.

    Existing values are removed first, so installing twice never leaves
    duplicate headers behind.
    """
    if not token:
        logger.debug(f"No token provided, skipping {scope} git authentication")
        return

    credential = basic_credential(token)
    register_secret(token)
    register_secret(credential)

    header_key = extraheader_key(server_url)
    rewrite_key = insteadof_key(server_url)
    cwd = scope.repo_dir

    for key in (header_key, rewrite_key):
        runner.git("config", scope.selector, "--unset-all", key, cwd=cwd, check=False)
    runner.git(
        "config",
        scope.selector,
        "--add",
        header_key,
        f"AUTHORIZATION: basic {credential}",
        cwd=cwd,
    )
    runner.git(
        "config",
        scope.selector,
        "--add",
        rewrite_key,
        insteadof_value(server_url),
        cwd=cwd,
    )
    logger.debug(f"Configured {scope} git authentication")


def cleanup_git_auth(
    runner: CommandRunner,
    scope: CredentialScope,
    server_url: str = DEFAULT_SERVER_URL,
) -> None:
    """Remove the credential header and URL rewrite from the given scope."""
    for key in (extraheader_key(server_url), insteadof_key(server_url)):
        # exit status 5 means the key was not set
        runner.git(
            "config",
            scope.selector,
            "--unset-all",
            key,
            cwd=scope.repo_dir,
            check=False,
        )
    logger.debug(f"Removed {scope} git authentication")


@contextmanager
def git_credentials(
    runner: CommandRunner,
    token: str,
    scope: CredentialScope,
    server_url: str = DEFAULT_SERVER_URL,
) -> Iterator[CredentialScope]:
    """
    Keep git authenticated at ``scope`` for the duration of the block.

    Usage:
        with git_credentials(runner, token, CredentialScope.global_scope()):
            ensure_mirror(...)
    """
    try:
        configure_git_auth(runner, token, scope, server_url)
        yield scope
    finally:
        cleanup_git_auth(runner, scope, server_url)


def persist_credentials(
    runner: CommandRunner,
    token: str,
    repo_dir: Path,
    server_url: str = DEFAULT_SERVER_URL,
) -> None:
    """Authenticate a checkout, and every submodule in it, for later job steps."""
    if not token:
        logger.debug("No token provided, nothing to persist")
        return

    configure_git_auth(runner, token, CredentialScope.local(repo_dir), server_url)

    credential = basic_credential(token)
    header_key = extraheader_key(server_url)
    rewrite_key = insteadof_key(server_url)
    # submodule foreach runs each command through the shell
    runner.git(
        "submodule",
        "foreach",
        "--recursive",
        f"git config --local --unset-all '{header_key}' || true; "
        f"git config --local --add '{header_key}' 'AUTHORIZATION: basic {credential}'",
        cwd=repo_dir,
    )
    runner.git(
        "submodule",
        "foreach",
        "--recursive",
        f"git config --local --unset-all '{rewrite_key}' || true; "
        f"git config --local --add '{rewrite_key}' '{insteadof_value(server_url)}'",
        cwd=repo_dir,
    )
