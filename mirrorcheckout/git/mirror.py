"""
Persistent mirror cache shared by the checkouts of a runner.

Cache Structure:
    $NSC_GIT_MIRROR/
    └── v2/                          # layout version, world-writable
        ├── owner-repo/              # mirrors of the default identity
        └── uid-1002/                # mirrors of any other unprivileged user
            └── owner-repo/

Each mirror is a full ``git clone --mirror`` (all refs, all objects, no
working tree). Mirrors are never deleted here: once created they are only
fetched into. Concurrent jobs, possibly running as different users, may
target the same directory; no lock is taken. Creation is guarded by an
existence check and a lost creation race falls back to a fetch.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from mirrorcheckout.config import get_default_uid, get_layout_version
from mirrorcheckout.errors import CommandError, WorkspaceError
from mirrorcheckout.git.fetch import plan_fetch
from mirrorcheckout.git.runner import CommandKind, CommandRunner

logger = logging.getLogger(__name__)

SHARED_DIR_MODE = 0o777


def _current_uid() -> int:
    return os.getuid()


def mirror_namespace(
    uid: Optional[int] = None, default_uid: Optional[int] = None
) -> Optional[str]:
    """
    Get the per-user directory segment for the mirrors of ``uid``.

    The default identity, ``[mirror] default_uid``, keeps the historical
    layout without a segment.

    Returns:
        "uid-<uid>" for non-default users, None for the default identity
    """
    if uid is None:
        uid = _current_uid()
    if default_uid is None:
        default_uid = get_default_uid()
    if uid == default_uid:
        return None
    return f"uid-{uid}"


def mirror_path(
    mirror_root: Path,
    owner: str,
    repo: str,
    uid: Optional[int] = None,
    default_uid: Optional[int] = None,
    layout_version: Optional[str] = None,
) -> Path:
    """
    Compute the mirror directory of a repository.

    Examples:
        (/cache, "acme", "tools") -> /cache/v2/acme-tools
        (/cache, "acme", "tools", uid=1002) -> /cache/v2/uid-1002/acme-tools

    Args:
        mirror_root: Root of the mirror cache
        owner: Repository owner
        repo: Repository name
        uid: User the mirror is for (defaults to the current user)
        default_uid: Identity keeping the un-namespaced layout
        layout_version: Cache layout version (defaults to the configured one)

    Returns:
        Path of the mirror directory
    """
    version_root = Path(mirror_root) / (layout_version or get_layout_version())
    namespace = mirror_namespace(uid, default_uid)
    if namespace:
        version_root = version_root / namespace
    return version_root / f"{owner}-{repo}"


def repair_permissions(directory: Path, runner: CommandRunner) -> bool:
    """
    Make a shared directory writable by every user of the cache.

    A directory owned by another user can only be changed with elevated
    privileges; ``sudo -n`` is tried in that case. Failures are logged and
    never abort the run.

    Returns:
        True if the directory ends up world-writable
    """
    try:
        if directory.stat().st_mode & SHARED_DIR_MODE == SHARED_DIR_MODE:
            return True
    except OSError as e:
        logger.warning(f"Could not inspect permissions of {directory}: {e}")
        return False

    try:
        os.chmod(directory, SHARED_DIR_MODE)
        return True
    except PermissionError:
        logger.debug(f"Not allowed to change {directory}, escalating")

    try:
        runner.run(
            "sudo",
            ["-n", "chmod", f"{SHARED_DIR_MODE:o}", str(directory)],
            kind=CommandKind.local,
        )
        return True
    except CommandError as e:
        logger.warning(
            f"Could not make {directory} writable for all users: {e}. "
            "Other users of this runner may be unable to create mirrors."
        )
        return False


def prepare_shared_dir(directory: Path, runner: CommandRunner) -> None:
    """Create a world-writable directory, or repair an existing one."""
    if not directory.exists():
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create {directory}: {e}")
            return
    repair_permissions(directory, runner)


def _is_mirror(path: Path) -> bool:
    return (path / "HEAD").is_file() and (path / "objects").is_dir()


def warn_unshared_mirror(legacy_dir: Path, mirror_dir: Path) -> None:
    """Warn when a namespaced mirror is about to be cloned next to a default one."""
    if legacy_dir == mirror_dir or not _is_mirror(legacy_dir):
        return
    logger.warning(
        f"Not reusing mirror {legacy_dir}: it belongs to uid {get_default_uid()}, "
        f"this job runs as uid {_current_uid()}. Cloning {mirror_dir} instead. "
        "Set [mirror] default_uid to share the existing mirror."
    )


def ensure_mirror(
    runner: CommandRunner,
    mirror_root: Path,
    owner: str,
    repo: str,
    remote_url: str,
    max_attempts: int = 1,
    lfs: bool = False,
    refspecs: Optional[List[str]] = None,
) -> Path:
    """
    Create the mirror of a repository, or bring an existing one up to date.

    Args:
        runner: Command runner
        mirror_root: Root of the mirror cache
        owner: Repository owner
        repo: Repository name
        remote_url: URL of the upstream repository
        max_attempts: Attempts for clone and fetch
        lfs: Also fetch Git LFS objects into the mirror
        refspecs: Refspecs restricting what is fetched into the mirror

    Returns:
        Path to the mirror
    """
    mirror_dir = mirror_path(mirror_root, owner, repo)
    created = False

    if not mirror_dir.exists():
        version_root = Path(mirror_root) / get_layout_version()
        warn_unshared_mirror(version_root / f"{owner}-{repo}", mirror_dir)
        prepare_shared_dir(version_root, runner)
        try:
            mirror_dir.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkspaceError(mirror_dir.parent, e) from e

        logger.info(f"Creating mirror of {owner}/{repo} at {mirror_dir}")
        try:
            runner.git(
                "clone",
                "--mirror",
                "--",
                remote_url,
                str(mirror_dir),
                max_attempts=max_attempts,
            )
            created = True
        except CommandError:
            if not _is_mirror(mirror_dir):
                raise
            # Another job created the mirror concurrently
            logger.warning(f"Mirror {mirror_dir} was created concurrently, updating it")

    if not created:
        logger.info(f"Updating mirror of {owner}/{repo} at {mirror_dir}")
        runner.git(
            "-c",
            "protocol.version=2",
            "--git-dir",
            str(mirror_dir),
            "fetch",
            "--no-recurse-submodules",
            "--prune",
            "--prune-tags",
            "origin",
            *plan_fetch(None, refspec_override=refspecs),
            max_attempts=max_attempts,
        )

    if lfs:
        runner.git(
            "--git-dir",
            str(mirror_dir),
            "lfs",
            "fetch",
            "origin",
            max_attempts=max_attempts,
        )

    return mirror_dir


def list_mirrored_refs(runner: CommandRunner, mirror_dir: Path) -> str:
    result = runner.git("--git-dir", str(mirror_dir), "show-ref", check=False)
    return result.stdout
