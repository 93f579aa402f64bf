"""Submodule materialization, delegated to the external checkout helper."""

import logging
from pathlib import Path
from typing import List

from mirrorcheckout.config import get_submodule_helper
from mirrorcheckout.git.runner import CommandKind, CommandResult, CommandRunner
from mirrorcheckout.model.request import CheckoutRequest, SubmoduleMode

logger = logging.getLogger(__name__)


def submodule_helper_args(
    request: CheckoutRequest, mirror_root: Path, repo_dir: Path, debug: bool = False
) -> List[str]:
    """Arguments of ``<helper> git-checkout update-submodules``."""
    args = [
        "git-checkout",
        "update-submodules",
        "--mirror_base_path",
        str(mirror_root),
        "--repository_path",
        str(repo_dir),
    ]
    if request.submodules == SubmoduleMode.recursive:
        args.append("--recurse")
    if request.fetch_depth > 0:
        args += ["--depth", str(request.fetch_depth)]
    if request.filter:
        args += ["--filter", request.filter]
    if request.dissociate_submodules:
        args.append("--dissociate")
    if debug:
        args.append("--debug_to_console")
    return args


def update_submodules(
    runner: CommandRunner,
    request: CheckoutRequest,
    mirror_root: Path,
    repo_dir: Path,
    debug: bool = False,
) -> CommandResult:
    """
    Materialize the submodules of a checkout through the helper.

    The helper keeps its own mirrors under ``mirror_root``; it is treated as
    a network operation and retried like a fetch.
    """
    helper = get_submodule_helper()
    logger.debug(f"Updating submodules of {repo_dir} with {helper}")
    return runner.run(
        helper,
        submodule_helper_args(request, mirror_root, repo_dir, debug),
        max_attempts=request.max_attempts,
        kind=CommandKind.network,
    )
