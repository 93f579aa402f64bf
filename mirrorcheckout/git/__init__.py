"""
Git operations for mirror-accelerated checkouts.

Architecture:
    Mirror Layer: one full mirror per repository under
        $NSC_GIT_MIRROR/{layout}/[uid-{uid}/]{owner}-{repo}/
        (persistent, shared across jobs, only ever fetched into)
    Work Layer: a per-job checkout created with ``git init`` that borrows
        objects from the mirror through git's alternates mechanism

Every external invocation goes through ``CommandRunner``, which applies the
retry policy to network-sensitive commands only.
"""

from .auth import (
    CredentialScope,
    cleanup_git_auth,
    configure_git_auth,
    git_credentials,
    persist_credentials,
)
from .checkout import materialize, write_alternates
from .fetch import SparseCheckout, fetch_flags, plan_fetch
from .mirror import ensure_mirror, list_mirrored_refs, mirror_path
from .refs import classify_ref, resolve_ref, with_default_ref
from .runner import (
    CommandKind,
    CommandResult,
    CommandRunner,
    RetryPolicy,
    classify,
)
from .submodules import update_submodules

__all__ = [
    # Execution
    "CommandKind",
    "CommandResult",
    "CommandRunner",
    "RetryPolicy",
    "classify",
    # Credentials
    "CredentialScope",
    "cleanup_git_auth",
    "configure_git_auth",
    "git_credentials",
    "persist_credentials",
    # Mirror
    "ensure_mirror",
    "list_mirrored_refs",
    "mirror_path",
    # Planning
    "classify_ref",
    "resolve_ref",
    "with_default_ref",
    "SparseCheckout",
    "fetch_flags",
    "plan_fetch",
    # Checkout
    "materialize",
    "write_alternates",
    "update_submodules",
]
