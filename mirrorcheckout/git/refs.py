"""
Resolution of a loosely specified ref/commit against the mirror.

The mirror is a faithful copy of the remote, so every question about the
remote (its default branch, what an unqualified name refers to) is answered
locally without touching the network.
"""

import logging
from pathlib import Path

from mirrorcheckout.errors import PreconditionError, ResolutionError
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.model.plan import CheckoutPlan

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
PULL_PREFIX = "refs/pull/"
REMOTE_ORIGIN_PREFIX = "refs/remotes/origin/"
REMOTE_PULL_PREFIX = "refs/remotes/pull/"


def is_qualified(ref: str) -> bool:
    return ref.upper().startswith("REFS/")


def default_branch(runner: CommandRunner, mirror_dir: Path) -> str:
    """Get the remote's default branch from the mirror's HEAD."""
    result = runner.git(
        "--git-dir", str(mirror_dir), "symbolic-ref", "--quiet", "HEAD", check=False
    )
    ref = result.stdout.strip()
    if result.status != 0 or not ref:
        raise ResolutionError("HEAD", str(mirror_dir), "no default branch")
    return ref


def with_default_ref(
    runner: CommandRunner, ref: str, commit: str, mirror_dir: Path
) -> str:
    """Fall back to the remote default branch when neither ref nor commit is given."""
    if ref or commit:
        return ref
    logger.debug("No ref or commit => determine default branch")
    ref = default_branch(runner, mirror_dir)
    logger.debug(f"Detected default branch {ref}")
    return ref


def qualify_ref(runner: CommandRunner, ref: str, mirror_dir: Path) -> str:
    """
    Resolve an unqualified name to a fully qualified ref.

    Branches win over tags of the same name. Anything else is left to git's
    own disambiguation rules (e.g. "pull/1/head" -> "refs/pull/1/head").

    Raises:
        ResolutionError: If the name matches nothing in the mirror
    """
    git_dir = str(mirror_dir)
    for prefix in (HEADS_PREFIX, TAGS_PREFIX):
        candidate = f"{prefix}{ref}"
        result = runner.git(
            "--git-dir",
            git_dir,
            "show-ref",
            "--verify",
            "--quiet",
            candidate,
            check=False,
        )
        if result.status == 0:
            return candidate

    result = runner.git(
        "--git-dir",
        git_dir,
        "rev-parse",
        "--verify",
        "--symbolic-full-name",
        ref,
        check=False,
    )
    qualified = result.stdout.strip()
    if result.status != 0 or not is_qualified(qualified):
        raise ResolutionError(ref, git_dir, "no matching branch or tag")
    return qualified


def classify_ref(ref: str, commit: str) -> CheckoutPlan:
    """
    Map a fully qualified ref (or a bare commit) to where it is checked out.

    Examples:
        refs/heads/main    -> refs/remotes/origin/main, start branch "main"
        refs/pull/7/merge  -> refs/remotes/pull/7
        refs/tags/v1       -> refs/tags/v1
        "" with commit abc -> abc
    """
    upper_ref = ref.upper()
    if upper_ref.startswith(HEADS_PREFIX.upper()):
        logger.debug("Processing branch ref")
        branch = ref[len(HEADS_PREFIX) :]
        return CheckoutPlan(
            ref=ref,
            commit=commit,
            original_ref=ref,
            pointer_ref=f"{REMOTE_ORIGIN_PREFIX}{branch}",
            start_branch=branch,
        )
    if upper_ref.startswith(PULL_PREFIX.upper()):
        logger.debug("Processing pull ref")
        number = ref[len(PULL_PREFIX) :].split("/")[0]
        return CheckoutPlan(
            ref=ref,
            commit=commit,
            original_ref=ref,
            pointer_ref=f"{REMOTE_PULL_PREFIX}{number}",
        )
    if ref:
        logger.debug("Processing generic ref")
        return CheckoutPlan(ref=ref, commit=commit, original_ref=ref, pointer_ref=ref)

    logger.debug("Processing commit without ref")
    return CheckoutPlan(ref="", commit=commit, original_ref=commit, pointer_ref=commit)


def resolve_ref(
    runner: CommandRunner, ref: str, commit: str, mirror_dir: Path
) -> CheckoutPlan:
    """
    Turn a (ref, commit) pair into a checkout plan without fetch refspecs.

    Args:
        runner: Command runner
        ref: Branch, tag or qualified ref, may be empty
        commit: Commit hash, may be empty
        mirror_dir: Mirror of the remote

    Returns:
        CheckoutPlan with original_ref, pointer_ref and start_branch set

    Raises:
        PreconditionError: If neither ref nor commit is given
        ResolutionError: If the ref does not exist in the mirror
    """
    if not ref and not commit:
        raise PreconditionError(
            "Either a ref or a commit is required to plan a checkout"
        )

    if ref and not is_qualified(ref):
        logger.debug("Unqualified ref => resolve")
        ref = qualify_ref(runner, ref, mirror_dir)
        logger.debug(f"Detected fully-qualified ref {ref}")

    plan = classify_ref(ref, commit)
    logger.debug(f"originalRef = {plan.original_ref}")
    logger.debug(f"pointerRef = {plan.pointer_ref}")
    logger.debug(f"startBranch = {plan.start_branch}")
    return plan
