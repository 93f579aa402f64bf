import io
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from mirrorcheckout.cli.utils import logging as log_utils
from mirrorcheckout.git.runner import CommandResult, CommandRunner


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("mirrorcheckout")
    level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream  # Yield the stream to the test function

    # Cleanup after the test
    logger.removeHandler(handler)
    logger.setLevel(level)
    log_stream.close()


@pytest.fixture(autouse=True)
def clean_runner_env(monkeypatch):
    """Keep the CI environment of the test run out of the tests."""
    for name in (
        "GITHUB_ACTIONS",
        "GITHUB_REPOSITORY",
        "GITHUB_REF",
        "GITHUB_SHA",
        "GITHUB_SERVER_URL",
        "GITHUB_WORKSPACE",
        "NSC_GIT_MIRROR",
        "NSC_RUNNER_PROFILE_INFO",
        "RUNNER_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    logger = logging.getLogger("mirrorcheckout")
    level = logger.level
    yield
    logger.setLevel(level)
    log_utils._secrets.clear()


@pytest.fixture
def mirror_config(monkeypatch):
    """Pin the mirror layout regardless of the user's configuration file."""
    monkeypatch.setattr("mirrorcheckout.git.mirror.get_layout_version", lambda: "v2")
    monkeypatch.setattr("mirrorcheckout.git.mirror.get_default_uid", os.getuid)
    monkeypatch.setattr(
        "mirrorcheckout.git.submodules.get_submodule_helper", lambda: "nsc"
    )
    monkeypatch.setattr("mirrorcheckout.git.runner.get_submodule_helper", lambda: "nsc")


# process fakes


@dataclass
class Call:
    argv: List[str]
    env: Dict[str, str]
    cwd: Optional[Path]

    @property
    def line(self) -> str:
        return " ".join(self.argv)


@dataclass
class Rule:
    fragment: str
    results: List[CommandResult]
    effect: Optional[Callable[[], None]] = None
    used: int = 0

    def next_result(self) -> CommandResult:
        result = self.results[min(self.used, len(self.results) - 1)]
        self.used += 1
        return result


@dataclass
class FakeProcess:
    """
    Recording process port.

    Commands succeed with empty output unless a rule registered with ``on``
    matches, i.e. its fragment is a substring of the command line. A rule
    with several results answers them in order and then repeats the last.
    """

    calls: List[Call] = field(default_factory=list)
    rules: List[Rule] = field(default_factory=list)
    sleeps: List[float] = field(default_factory=list)

    def on(self, fragment: str, *results: CommandResult, effect=None) -> "FakeProcess":
        self.rules.append(Rule(fragment, list(results) or [CommandResult(0)], effect))
        return self

    def fail(self, fragment: str, status: int = 128, stderr: str = "fatal: boom"):
        return self.on(fragment, CommandResult(status, "", stderr))

    def __call__(self, argv, env, cwd) -> CommandResult:
        self.calls.append(Call(list(argv), dict(env), cwd))
        line = " ".join(argv)
        for rule in self.rules:
            if rule.fragment in line:
                if rule.effect:
                    rule.effect()
                return rule.next_result()
        return CommandResult(0)

    @property
    def lines(self) -> List[str]:
        return [call.line for call in self.calls]

    def matching(self, fragment: str) -> List[Call]:
        return [call for call in self.calls if fragment in call.line]

    def index(self, fragment: str) -> int:
        """Position of the first command containing ``fragment``."""
        for i, line in enumerate(self.lines):
            if fragment in line:
                return i
        raise AssertionError(f"no command matching {fragment!r} in {self.lines}")


@pytest.fixture
def fake_process():
    return FakeProcess()


@pytest.fixture
def runner(fake_process, mirror_config):
    return CommandRunner(
        backoff_seconds=1, process=fake_process, sleep=fake_process.sleeps.append
    )
