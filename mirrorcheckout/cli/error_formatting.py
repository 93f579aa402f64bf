"""Error formatting for CLI output."""

from mirrorcheckout.cli.utils.logging import mask_secrets
from mirrorcheckout.errors import CheckoutError, CommandError, PreconditionError

# Lines of a failed command's stderr shown to the user
STDERR_TAIL_LINES = 20


def pretty_print_checkout_error(error: CheckoutError) -> str:
    """Format a CheckoutError as the single top-level failure message.

    Args:
        error: The error that terminated the run

    Returns:
        The message, followed by a remediation hint or the tail of the failed
        command's output when available. Registered secrets are masked.

    Example output:
        Command 'git fetch ... origin' failed with exit code 128

          Exit code: 128
          Attempts: 3
          fatal: unable to access 'https://github.com/acme/tools.git/': ...
    """
    if isinstance(error, CommandError):
        message_parts = [
            f"Command '{' '.join(error.argv)}' failed with exit code {error.status}"
        ]
        context_parts = [f"  Exit code: {error.status}"]
        if error.attempts > 1:
            context_parts.append(f"  Attempts: {error.attempts}")
        stderr_lines = error.stderr.strip().splitlines()[-STDERR_TAIL_LINES:]
        context_parts.extend(f"  {line}" for line in stderr_lines)
        message_parts.append("\n\n" + "\n".join(context_parts))
    elif isinstance(error, PreconditionError):
        message_parts = [error.message]
        if error.hint:
            message_parts.append(f"\n\n{error.hint}")
    else:
        message_parts = [str(error)]

    return mask_secrets("".join(message_parts))
