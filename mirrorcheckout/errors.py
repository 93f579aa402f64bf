"""
Exception classes for mirror-accelerated checkouts.
"""

from typing import List, Optional


class CheckoutError(Exception):
    """Base exception for all checkout errors that terminate a run."""

    pass


class PreconditionError(CheckoutError):
    """Raised when the environment or the request cannot support a checkout."""

    def __init__(self, message: str, hint: str = ""):
        self.message = message
        self.hint = hint
        super().__init__(message)


class ResolutionError(CheckoutError):
    """Raised when a ref cannot be matched against the mirror."""

    def __init__(self, ref: str, mirror_dir: str, detail: str = ""):
        self.ref = ref
        self.mirror_dir = mirror_dir
        message = f"Unable to resolve '{ref}' to a branch or tag in mirror {mirror_dir}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CommandError(CheckoutError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        argv: List[str],
        status: Optional[int],
        stderr: str = "",
        attempts: int = 1,
    ):
        self.argv = list(argv)
        self.status = status
        self.stderr = stderr
        self.attempts = attempts

        message = f"Command '{' '.join(self.argv)}' failed with exit code {status}"
        if attempts > 1:
            message += f" after {attempts} attempts"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


class WorkspaceError(CheckoutError):
    """Raised when the mirror cache or the checkout cannot be written to."""

    def __init__(self, path, cause: OSError):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot write {path}: {cause.strerror or cause}")
