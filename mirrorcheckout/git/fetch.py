"""Refspecs, fetch flags and sparse checkout patterns of a checkout."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from mirrorcheckout.errors import WorkspaceError
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.model.plan import CheckoutPlan

logger = logging.getLogger(__name__)

ALL_HEADS_REFSPEC = "+refs/heads/*:refs/remotes/origin/*"
ALL_TAGS_REFSPEC = "+refs/tags/*:refs/tags/*"


def plan_fetch(
    plan: Optional[CheckoutPlan],
    depth: int = 0,
    refspec_override: Optional[Sequence[str]] = None,
) -> List[str]:
    """
    Compute the refspecs to fetch.

    Args:
        plan: Resolved checkout, None when fetching into the mirror
        depth: Fetch depth, 0 for the full history
        refspec_override: Refspecs that replace the computed ones verbatim

    Returns:
        Refspecs in fetch order. An empty list means "use the remote's
        configured refspecs".
    """
    if refspec_override:
        return list(refspec_override)
    if plan is None:
        return []

    ref, commit = plan.ref, plan.commit
    if depth > 0:
        # Only fetch the requested target
        if ref:
            return [f"+{commit or ref}:{plan.pointer_ref}"]
        return [commit]

    refspecs = [ALL_HEADS_REFSPEC, ALL_TAGS_REFSPEC]
    upper_ref = ref.upper()
    if (
        ref
        and not upper_ref.startswith("REFS/HEADS/")
        and not upper_ref.startswith("REFS/TAGS/")
    ):
        refspecs.append(f"+{commit or ref}:{plan.pointer_ref}")
    if not ref and commit:
        # The commit may be unreachable from every advertised ref (rewritten
        # history, deleted branch, unmerged pull request).
        refspecs.append(commit)
    return refspecs


def fetch_flags(depth: int, filter_spec: str = "") -> List[str]:
    flags: List[str] = []
    if depth > 0:
        flags += ["--depth", str(depth), "--no-tags"]
    if filter_spec:
        flags += ["--filter", filter_spec]
    return flags


@dataclass(frozen=True)
class SparseCheckout:
    """
    Sparse checkout patterns of a working checkout.

    Cone mode treats every pattern as a directory to include in full.
    Non-cone mode appends the patterns verbatim, gitignore style, to the
    sparse-checkout file.
    """

    patterns: List[str] = field(default_factory=list)
    cone_mode: bool = True

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def apply(self, runner: CommandRunner, git_flags: List[str], repo_dir: Path):
        if not self.patterns:
            return
        if self.cone_mode:
            runner.git(*git_flags, "sparse-checkout", "set", "--cone", *self.patterns)
            return

        runner.git(*git_flags, "config", "core.sparseCheckout", "true")
        output = runner.git(
            *git_flags, "rev-parse", "--git-path", "info/sparse-checkout"
        ).stdout.strip()
        sparse_file = Path(output)
        if not sparse_file.is_absolute():
            sparse_file = Path(repo_dir) / sparse_file
        try:
            sparse_file.parent.mkdir(parents=True, exist_ok=True)
            with open(sparse_file, "a") as f:
                f.write("\n" + "\n".join(self.patterns) + "\n")
        except OSError as e:
            raise WorkspaceError(sparse_file, e) from e
        logger.debug(f"Wrote {len(self.patterns)} sparse patterns to {sparse_file}")
