"""
End-to-end mirror-accelerated checkout.

Steps run strictly in order, each blocking on its external commands:

    global credentials -> mirror refresh -> ref resolution -> working fetch
    -> checkout -> submodules -> local credentials -> credential cleanup

Global credentials are removed on every exit path so they never leak into
later steps of the job.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

from mirrorcheckout.cli.utils.logging import log_group
from mirrorcheckout.config import (
    get_mirror_root,
    get_workspace_root,
    is_runner_profile_managed,
)
from mirrorcheckout.errors import PreconditionError
from mirrorcheckout.git.auth import (
    CredentialScope,
    git_credentials,
    persist_credentials,
)
from mirrorcheckout.git.checkout import materialize
from mirrorcheckout.git.fetch import plan_fetch
from mirrorcheckout.git.mirror import ensure_mirror, list_mirrored_refs
from mirrorcheckout.git.refs import resolve_ref, with_default_ref
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.git.submodules import update_submodules
from mirrorcheckout.model.plan import CheckoutPlan
from mirrorcheckout.model.request import CheckoutRequest, SubmoduleMode

logger = logging.getLogger(__name__)

DOCS_URL = "https://namespace.so/docs/solutions/github-actions/caching#git-checkouts"


def mirror_disabled_hint(profile_managed: bool) -> str:
    if profile_managed:
        return (
            "Please enable Git repository checkouts "
            "in your runner profile cache settings."
        )
    return (
        "Please update your runs-on labels. E.g.:\n\n"
        "  runs-on:\n"
        "    - nscloud-ubuntu-22.04-amd64-8x16-with-cache\n"
        "    - nscloud-git-mirror-5gb"
    )


def check_mirror_root(mirror_root: Optional[Path]) -> Path:
    """
    Ensure the runner provides a mirror cache.

    Raises:
        PreconditionError: If git caching is not enabled for this runner
    """
    logger.debug(f"Git mirror path {mirror_root}")
    if mirror_root is None or not Path(mirror_root).exists():
        raise PreconditionError(
            "Mirror-accelerated checkouts require Git caching to be enabled.",
            hint=(
                f"{mirror_disabled_hint(is_runner_profile_managed())}\n\n"
                f"See also {DOCS_URL}"
            ),
        )
    return Path(mirror_root)


def check_workspace(workspace: Optional[Path]) -> Path:
    logger.debug(f"Workspace path {workspace}")
    if workspace is None or not Path(workspace).exists():
        raise PreconditionError(f"Runner workspace is not set or missing: {workspace}")
    return Path(workspace)


def plan_checkout(
    runner: CommandRunner, request: CheckoutRequest, mirror_dir: Path
) -> CheckoutPlan:
    """Resolve the request against the mirror and compute its fetch refspecs."""
    ref = with_default_ref(runner, request.ref, request.commit, mirror_dir)
    plan = resolve_ref(runner, ref, request.commit, mirror_dir)
    plan = replace(plan, fetch_refspecs=plan_fetch(plan, request.fetch_depth))
    logger.debug(f"fetchRefs = {plan.fetch_refspecs}")
    return plan


def run_checkout(
    request: CheckoutRequest,
    mirror_root: Optional[Path] = None,
    workspace: Optional[Path] = None,
    runner: Optional[CommandRunner] = None,
) -> Path:
    """
    Check out a repository using the runner's mirror cache.

    Args:
        request: The checkout request
        mirror_root: Root of the mirror cache (defaults to $NSC_GIT_MIRROR)
        workspace: Workspace root (defaults to $GITHUB_WORKSPACE)
        runner: Command runner (defaults to one honouring request.trace)

    Returns:
        Path to the working checkout

    Raises:
        CheckoutError: On any failure; global credentials are already removed
    """
    mirror_root = check_mirror_root(
        mirror_root if mirror_root is not None else get_mirror_root()
    )
    workspace = check_workspace(
        workspace if workspace is not None else get_workspace_root()
    )
    runner = runner or CommandRunner(trace=request.trace)
    repo_dir = workspace / request.path if request.path else workspace
    debug = logger.isEnabledFor(logging.DEBUG)

    with git_credentials(
        runner, request.token, CredentialScope.global_scope(), request.server_url
    ):
        with log_group("Update checkout cache"):
            mirror_dir = ensure_mirror(
                runner,
                mirror_root,
                request.owner,
                request.repo,
                request.remote_url,
                max_attempts=request.max_attempts,
                lfs=request.lfs,
                refspecs=list(request.mirror_refspecs),
            )

        if debug:
            with log_group("Mirrored refs"):
                list_mirrored_refs(runner, mirror_dir)

        with log_group("Fetch using the cache"):
            plan = plan_checkout(runner, request, mirror_dir)
            materialize(runner, request, mirror_dir, plan, repo_dir)

        if request.submodules != SubmoduleMode.none:
            with log_group("Update submodules"):
                update_submodules(runner, request, mirror_root, repo_dir, debug=debug)

        if request.persist_credentials:
            with log_group("Persist Git authentication"):
                persist_credentials(runner, request.token, repo_dir, request.server_url)

    logger.info(f"Checked out {request.full_name}@{plan.original_ref} to {repo_dir}")
    return repo_dir
