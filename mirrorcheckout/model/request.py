"""Pydantic model of a single checkout invocation."""

import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mirrorcheckout.config import get_default_max_attempts

DEFAULT_SERVER_URL = "https://github.com"

_SHA_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def is_full_sha(value: str) -> bool:
    """Check if a string is a full 40 character commit hash."""
    return bool(_SHA_RE.match(value or ""))


def parse_bool(value: Any) -> bool:
    """Interpret an action input as a boolean, only 'true' counts."""
    if isinstance(value, bool):
        return value
    return str(value or "").strip().upper() == "TRUE"


# Enums
class SubmoduleMode(str, Enum):
    """Which submodules are materialized after the main checkout."""

    none = "none"
    shallow = "shallow"
    recursive = "recursive"

    @classmethod
    def from_input(cls, value: Any) -> "SubmoduleMode":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        if text == "RECURSIVE":
            return cls.recursive
        if text in ("TRUE", "SHALLOW"):
            return cls.shallow
        return cls.none


class DissociateMode(str, Enum):
    """Which checkouts are copied out of the mirror object store."""

    none = "none"
    main = "main"
    recursive = "recursive"

    @classmethod
    def from_input(cls, value: Any) -> "DissociateMode":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        if text == "RECURSIVE":
            return cls.recursive
        if text in ("TRUE", "MAIN"):
            return cls.main
        return cls.none


class CheckoutRequest(BaseModel):
    """
    Everything a checkout run needs, validated once at entry.

    A ref that is a full commit hash is moved to ``commit`` so that the rest
    of the run only ever sees symbolic names in ``ref``.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner")
    repo: str = Field(..., description="Repository name")
    ref: str = Field("", description="Branch, tag or fully qualified ref")
    commit: str = Field("", description="Commit hash to check out")
    is_workflow_repository: bool = Field(
        False, description="Whether the repository triggered the workflow"
    )
    token: str = Field("", description="Token used to authenticate git")
    server_url: str = Field(DEFAULT_SERVER_URL, description="Git server base URL")
    fetch_depth: int = Field(1, description="Commits to fetch, 0 for full history")
    filter: str = Field("", description="Partial clone object filter")
    sparse_checkout: List[str] = Field(
        default_factory=list, description="Sparse checkout patterns"
    )
    sparse_checkout_cone_mode: bool = Field(True, description="Use cone mode")
    path: str = Field("", description="Target path relative to the workspace")
    submodules: SubmoduleMode = Field(SubmoduleMode.none)
    dissociate: DissociateMode = Field(DissociateMode.none)
    persist_credentials: bool = Field(True)
    lfs: bool = Field(False, description="Download and cache Git LFS objects")
    max_attempts: int = Field(3, description="Attempts for network operations")
    trace: bool = Field(False, description="Enable git protocol tracing")
    mirror_refspecs: List[str] = Field(
        default_factory=list, description="Refspecs restricting the mirror fetch"
    )

    @model_validator(mode="before")
    @classmethod
    def move_sha_ref_to_commit(cls, data: Any) -> Any:
        if isinstance(data, dict):
            ref = (data.get("ref") or "").strip()
            if is_full_sha(ref):
                data = dict(data)
                data["commit"] = ref
                data["ref"] = ""
        return data

    @field_validator("owner", "repo")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        if "/" in v:
            raise ValueError(f"'{v}' must not contain '/'")
        return v.strip()

    @field_validator("ref", "commit", "filter", "path", "token")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @field_validator("fetch_depth")
    @classmethod
    def clamp_depth(cls, v: int) -> int:
        return max(0, v)

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v

    @field_validator("sparse_checkout", "mirror_refspecs")
    @classmethod
    def drop_blank_entries(cls, v: List[str]) -> List[str]:
        return [entry.strip() for entry in v if entry and entry.strip()]

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        v = (v or DEFAULT_SERVER_URL).strip().rstrip("/")
        if not urlparse(v).scheme:
            raise ValueError(f"server_url '{v}' must include a scheme")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def remote_url(self) -> str:
        """
        URL of the upstream repository.

        For http(s) servers the URL carries a placeholder user so git never
        prompts for one; the credential itself travels in an extra header.
        """
        parsed = urlparse(self.server_url)
        if parsed.scheme in ("http", "https"):
            base = f"{parsed.scheme}://token@{parsed.netloc}{parsed.path}"
            return f"{base}/{self.full_name}.git"
        return f"{self.server_url}/{self.full_name}.git"

    @property
    def dissociate_main(self) -> bool:
        return self.dissociate in (DissociateMode.main, DissociateMode.recursive)

    @property
    def dissociate_submodules(self) -> bool:
        return self.dissociate == DissociateMode.recursive

    @classmethod
    def from_inputs(
        cls, inputs: Mapping[str, Any], context: Optional[Mapping[str, str]] = None
    ) -> "CheckoutRequest":
        """
        Build a request from raw action inputs and the workflow context.

        Args:
            inputs: Input values keyed by action input name (e.g. "fetch-depth")
            context: Workflow context with the keys GITHUB_REPOSITORY,
                GITHUB_REF, GITHUB_SHA and GITHUB_SERVER_URL

        Returns:
            A validated CheckoutRequest
        """
        context = context or {}
        workflow_repository = context.get("GITHUB_REPOSITORY", "")

        owner_repo = str(inputs.get("repository") or workflow_repository)
        owner, _, repo = owner_repo.partition("/")

        is_workflow_repository = (
            bool(workflow_repository)
            and owner_repo.upper() == workflow_repository.upper()
        )

        ref = str(inputs.get("ref") or "").strip()
        commit = str(inputs.get("commit") or "").strip()
        if not ref and is_workflow_repository:
            ref = context.get("GITHUB_REF", "")
            commit = context.get("GITHUB_SHA", "")
            # Some events carry an unqualified ref, e.g. "main" when a pull
            # request is merged.
            if commit and ref and not ref.startswith("refs/"):
                ref = f"refs/heads/{ref}"

        fields: Dict[str, Any] = {
            "owner": owner,
            "repo": repo,
            "ref": ref,
            "commit": commit,
            "is_workflow_repository": is_workflow_repository,
            "token": inputs.get("token") or "",
            "server_url": context.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
            "fetch_depth": _as_int(inputs.get("fetch-depth"), 1),
            "filter": inputs.get("filter") or "",
            "sparse_checkout": _as_lines(inputs.get("sparse-checkout")),
            "sparse_checkout_cone_mode": parse_bool(
                inputs.get("sparse-checkout-cone-mode", "true")
            ),
            "path": inputs.get("path") or "",
            "submodules": SubmoduleMode.from_input(inputs.get("submodules")),
            "dissociate": DissociateMode.from_input(inputs.get("dissociate")),
            "persist_credentials": parse_bool(
                inputs.get("persist-credentials", "true")
            ),
            "lfs": parse_bool(inputs.get("lfs")),
            "max_attempts": max(
                1, _as_int(inputs.get("max-attempts"), get_default_max_attempts())
            ),
            "trace": parse_bool(inputs.get("trace")),
            "mirror_refspecs": _as_lines(inputs.get("mirror-refspecs")),
        }
        return cls(**fields)


def _as_lines(value: Any) -> List[str]:
    """Split a multi-line action input, also accepting an already split list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return str(value).splitlines()


def _as_int(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default
