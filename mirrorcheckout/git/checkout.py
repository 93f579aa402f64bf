"""
Working checkouts backed by the mirror's object store.

The checkout is built with ``git init`` rather than ``git clone`` to keep
full control over the remote configuration and over what is fetched from
the remote versus borrowed from the mirror:

    1. init an empty repository, trust it, add ``origin``
    2. fetch the planned refspecs while git sees the mirror as an alternate
       object store, so objects already mirrored are not downloaded again
    3. either dissociate (repack every object locally) or persist the
       alternates file so the checkout keeps borrowing from the mirror
    4. apply sparse checkout patterns and check out the pointer ref
"""

import logging
from pathlib import Path
from typing import Dict, List

from mirrorcheckout.errors import WorkspaceError
from mirrorcheckout.git.fetch import SparseCheckout, fetch_flags
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.model.plan import CheckoutPlan
from mirrorcheckout.model.request import CheckoutRequest

logger = logging.getLogger(__name__)

ALTERNATES_FILE = Path(".git") / "objects" / "info" / "alternates"


def repo_git_flags(repo_dir: Path) -> List[str]:
    return ["--git-dir", str(Path(repo_dir) / ".git"), "--work-tree", str(repo_dir)]


def reference_env(mirror_dir: Path) -> Dict[str, str]:
    """Environment making the mirror's objects visible to a git process."""
    return {"GIT_ALTERNATE_OBJECT_DIRECTORIES": str(Path(mirror_dir) / "objects")}


def smudge_env(lfs: bool) -> Dict[str, str]:
    return {"GIT_LFS_SKIP_SMUDGE": "0" if lfs else "1"}


def init_repository(runner: CommandRunner, repo_dir: Path, remote_url: str) -> None:
    runner.git("-c", "advice.defaultBranchName=false", "init", str(repo_dir))
    runner.git("config", "--global", "--add", "safe.directory", str(repo_dir))
    runner.git(*repo_git_flags(repo_dir), "remote", "add", "origin", remote_url)


def fetch_from_remote(
    runner: CommandRunner,
    request: CheckoutRequest,
    mirror_dir: Path,
    plan: CheckoutPlan,
    repo_dir: Path,
) -> None:
    runner.git(
        *repo_git_flags(repo_dir),
        "fetch",
        "-v",
        "--prune",
        "--progress",
        "--no-recurse-submodules",
        *fetch_flags(request.fetch_depth, request.filter),
        "origin",
        *plan.fetch_refspecs,
        max_attempts=request.max_attempts,
        env=reference_env(mirror_dir),
    )

    if request.lfs:
        # LFS objects are served from the mirror's LFS cache when present
        runner.git(
            *repo_git_flags(repo_dir),
            "lfs",
            "fetch",
            "origin",
            plan.pointer_ref,
            max_attempts=request.max_attempts,
            env=reference_env(mirror_dir),
        )


def dissociate(runner: CommandRunner, mirror_dir: Path, repo_dir: Path) -> None:
    """Copy every object the checkout references out of the mirror."""
    logger.info(f"Dissociating {repo_dir} from the mirror")
    runner.git(
        *repo_git_flags(repo_dir), "repack", "-a", "-d", env=reference_env(mirror_dir)
    )


def write_alternates(mirror_dir: Path, repo_dir: Path) -> Path:
    """Make the checkout borrow objects from the mirror permanently."""
    alternates = Path(repo_dir) / ALTERNATES_FILE
    try:
        alternates.parent.mkdir(parents=True, exist_ok=True)
        alternates.write_text(str(Path(mirror_dir) / "objects"))
    except OSError as e:
        raise WorkspaceError(alternates, e) from e
    logger.debug(f"Wrote {alternates}")
    return alternates


def checkout_pointer(
    runner: CommandRunner,
    plan: CheckoutPlan,
    mirror_dir: Path,
    repo_dir: Path,
    lfs: bool,
) -> None:
    start_branch_flags = ["-B", plan.start_branch] if plan.start_branch else []
    runner.git(
        *repo_git_flags(repo_dir),
        "checkout",
        "--progress",
        "--force",
        *start_branch_flags,
        plan.pointer_ref,
        env={**smudge_env(lfs), **reference_env(mirror_dir)},
    )


def materialize(
    runner: CommandRunner,
    request: CheckoutRequest,
    mirror_dir: Path,
    plan: CheckoutPlan,
    repo_dir: Path,
) -> Path:
    """
    Build the working checkout of ``plan`` in ``repo_dir``.

    Args:
        runner: Command runner
        request: The checkout request
        mirror_dir: Mirror of the remote
        plan: Resolved checkout with its fetch refspecs
        repo_dir: Target working directory

    Returns:
        Path to the working checkout
    """
    init_repository(runner, repo_dir, request.remote_url)
    fetch_from_remote(runner, request, mirror_dir, plan, repo_dir)

    if request.dissociate_main:
        dissociate(runner, mirror_dir, repo_dir)
    else:
        write_alternates(mirror_dir, repo_dir)

    SparseCheckout(
        list(request.sparse_checkout), request.sparse_checkout_cone_mode
    ).apply(runner, repo_git_flags(repo_dir), repo_dir)

    logger.info(f"Checking out {plan.pointer_ref}")
    checkout_pointer(runner, plan, mirror_dir, repo_dir, request.lfs)
    return repo_dir
