"""
Execution of external commands under a bounded retry policy.

Every git (or helper) invocation of a checkout run goes through a single
CommandRunner. Commands are classified before they run:

    network  clone, fetch, ls-remote, lfs fetch and the submodule helper.
             Retried up to the requested number of attempts with a linear
             backoff (attempt index x backoff unit).
    local    init, checkout, repack, config and everything else.
             Run exactly once.

Processes are started through a narrow port, ``(argv, env, cwd) ->
CommandResult``. The default port uses GitPython's command executor; tests
substitute a recording fake.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from git.cmd import Git
from git.exc import GitCommandNotFound

from mirrorcheckout.config import get_backoff_seconds, get_submodule_helper
from mirrorcheckout.errors import CommandError

logger = logging.getLogger(__name__)

# Never block a CI job on an interactive credential prompt
GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "Never",
}

TRACE_ENV = {
    "GIT_TRACE": "1",
    "GIT_TRACE_PACKET": "1",
    "GIT_CURL_VERBOSE": "1",
}

NETWORK_SUBCOMMANDS = {"clone", "fetch", "ls-remote"}
NETWORK_LFS_SUBCOMMANDS = {"fetch", "pull"}

# git global options that consume the following argument
_GIT_OPTIONS_WITH_VALUE = {"-c", "-C", "--git-dir", "--work-tree", "--namespace"}


class CommandKind(str, Enum):
    network = "network"
    local = "local"


@dataclass(frozen=True)
class CommandResult:
    status: int
    stdout: str = ""
    stderr: str = ""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with a linear backoff."""

    max_attempts: int = 1
    backoff_seconds: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return attempt * self.backoff_seconds


ProcessPort = Callable[[List[str], Dict[str, str], Optional[Path]], CommandResult]


def run_process(
    argv: List[str], env: Dict[str, str], cwd: Optional[Path] = None
) -> CommandResult:
    """Run a process to completion and collect its output."""
    git = Git(str(cwd) if cwd else None)
    try:
        status, stdout, stderr = git.execute(
            argv,
            env=env,
            with_extended_output=True,
            with_exceptions=False,
        )
    except GitCommandNotFound as e:
        return CommandResult(status=127, stderr=str(e))
    return CommandResult(status=status, stdout=stdout, stderr=stderr)


def git_subcommand(args: Sequence[str]) -> List[str]:
    """Strip git's global options, returning the subcommand and its arguments."""
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _GIT_OPTIONS_WITH_VALUE:
            i += 2
        elif arg.startswith("-"):
            i += 1
        else:
            return list(args[i:])
    return []


def classify(command: str, args: Sequence[str]) -> CommandKind:
    """
    Classify an invocation as network-sensitive or local.

    Args:
        command: Executable name or path
        args: Arguments passed to the executable

    Returns:
        CommandKind.network if a retry can help, CommandKind.local otherwise
    """
    executable = os.path.basename(command)
    if executable != "git":
        if executable == os.path.basename(get_submodule_helper()):
            return CommandKind.network
        return CommandKind.local

    subcommand = git_subcommand(args)
    if not subcommand:
        return CommandKind.local
    if subcommand[0] in NETWORK_SUBCOMMANDS:
        return CommandKind.network
    if (
        subcommand[0] == "lfs"
        and len(subcommand) > 1
        and subcommand[1] in NETWORK_LFS_SUBCOMMANDS
    ):
        return CommandKind.network
    return CommandKind.local


class CommandRunner:
    """Runs external commands with the git environment and the retry policy."""

    def __init__(
        self,
        trace: bool = False,
        backoff_seconds: Optional[float] = None,
        process: ProcessPort = run_process,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.trace = trace
        self.backoff_seconds = (
            get_backoff_seconds() if backoff_seconds is None else backoff_seconds
        )
        self.process = process
        self.sleep = sleep

    def environment(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Variables added on top of the inherited process environment."""
        env = dict(GIT_ENV)
        if self.trace:
            env.update(TRACE_ENV)
        if extra:
            env.update(extra)
        return env

    def run(
        self,
        command: str,
        args: Sequence[str],
        max_attempts: int = 1,
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
        check: bool = True,
        kind: Optional[CommandKind] = None,
    ) -> CommandResult:
        """
        Run a command, retrying it only when it is network-sensitive.

        Args:
            command: Executable to run
            args: Arguments of the executable
            max_attempts: Attempts allowed for network-sensitive commands
            env: Variables added to the inherited environment
            cwd: Working directory
            check: Raise CommandError on a non-zero exit status
            kind: Override the automatic classification

        Returns:
            The CommandResult of the last attempt

        Raises:
            CommandError: If the command still fails after the allowed attempts
        """
        argv = [command, *args]
        kind = kind or classify(command, args)
        attempts = max(1, max_attempts) if kind == CommandKind.network else 1
        policy = RetryPolicy(attempts, self.backoff_seconds)
        full_env = self.environment(env)

        last_error: Optional[CommandError] = None
        for attempt in range(1, policy.max_attempts + 1):
            logger.info(f"[command]{' '.join(argv)}")
            result = self.process(argv, full_env, cwd)
            self._log_output(result)

            if result.status == 0 or not check:
                return result

            last_error = CommandError(argv, result.status, result.stderr, attempt)
            if attempt < policy.max_attempts:
                delay = policy.delay(attempt)
                logger.warning(
                    f"Command failed (attempt {attempt}/{policy.max_attempts}), "
                    f"retrying in {delay:g}s: {last_error}"
                )
                self.sleep(delay)

        assert last_error is not None
        raise last_error

    def git(self, *args: str, **kwargs) -> CommandResult:
        return self.run("git", list(args), **kwargs)

    def _log_output(self, result: CommandResult) -> None:
        if result.stdout:
            logger.info(result.stdout.rstrip())
        if result.stderr:
            # git writes progress and warnings to stderr
            logger.info(result.stderr.rstrip())
