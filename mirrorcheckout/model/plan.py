"""Resolved checkout targets."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CheckoutPlan:
    """
    Where a checkout points once the requested ref/commit is resolved.

    Attributes:
        ref: Fully qualified ref as known by the remote (may be empty)
        commit: Commit hash requested alongside or instead of the ref
        original_ref: How the remote calls the target (e.g. refs/heads/main)
        pointer_ref: How the fetched target is called locally
            (e.g. refs/remotes/origin/main)
        start_branch: Local branch created to track pointer_ref, if any
        fetch_refspecs: Refspecs fetched into the working checkout
    """

    ref: str
    commit: str
    original_ref: str
    pointer_ref: str
    start_branch: Optional[str] = None
    fetch_refspecs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
