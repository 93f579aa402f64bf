"""CLI commands for mirror-accelerated checkouts"""

import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
import yaml
from pydantic import ValidationError

from mirrorcheckout.cli.error_formatting import pretty_print_checkout_error
from mirrorcheckout.cli.utils.logging import logger
from mirrorcheckout.config import MIRROR_ROOT_ENV, WORKSPACE_ENV
from mirrorcheckout.errors import CheckoutError, PreconditionError
from mirrorcheckout.git.mirror import mirror_path
from mirrorcheckout.git.runner import CommandRunner
from mirrorcheckout.model.request import CheckoutRequest
from mirrorcheckout.orchestrator import check_mirror_root, plan_checkout, run_checkout

# Action inputs accepted by `run`, each also read from INPUT_<NAME>
ACTION_INPUTS = {
    "repository": "Repository name with owner, e.g. acme/tools",
    "ref": "Branch, tag or SHA to check out",
    "commit": "Commit to check out alongside or instead of the ref",
    "token": "Token used to fetch the repository",
    "path": "Relative path under the workspace to place the repository",
    "fetch-depth": "Number of commits to fetch, 0 for the full history",
    "filter": "Partial clone filter, e.g. blob:none",
    "sparse-checkout": "Newline separated sparse checkout patterns",
    "sparse-checkout-cone-mode": "Whether to use cone mode for sparse checkout",
    "submodules": "'true' for direct submodules, 'recursive' for all of them",
    "dissociate": "'true' to copy objects out of the mirror, 'recursive' "
    "to do so for submodules too",
    "persist-credentials": "Whether to keep the token in the local git config",
    "lfs": "Whether to download Git LFS files",
    "max-attempts": "Attempts for network operations",
    "trace": "Whether to trace git's network protocol",
    "mirror-refspecs": "Newline separated refspecs fetched into the mirror",
}


def action_inputs(f: Callable) -> Callable:
    """Decorator adding one option per action input"""
    for name, help_text in reversed(list(ACTION_INPUTS.items())):
        f = click.option(
            f"--{name}",
            name.replace("-", "_"),
            envvar=f"INPUT_{name.upper()}",
            default=None,
            help=help_text,
        )(f)
    return f


def collect_inputs(options: Dict[str, Any]) -> Dict[str, Any]:
    """Map option values back to action input names, dropping unset ones."""
    inputs = {}
    for name in ACTION_INPUTS:
        value = options.get(name.replace("-", "_"))
        if value is not None:
            inputs[name] = value
    return inputs


def build_request(inputs: Dict[str, Any]) -> CheckoutRequest:
    try:
        return CheckoutRequest.from_inputs(inputs, os.environ)
    except ValidationError as e:
        logger.error(f"Invalid checkout inputs:\n{e}")
        sys.exit(1)


@click.command(name="run")
@action_inputs
@click.option(
    "--workspace",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=WORKSPACE_ENV,
    help="Workspace root the repository is checked out under.",
)
@click.option(
    "--mirror-root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=MIRROR_ROOT_ENV,
    help="Root of the runner's git mirror cache.",
)
def run(workspace: Optional[Path], mirror_root: Optional[Path], **options):
    """Check out a repository using the runner's mirror cache.

    Every option can also be given as an action input, e.g. INPUT_FETCH-DEPTH.

    Example:

      mirror-checkout run --repository acme/tools --ref main --fetch-depth 0
    """
    request = build_request(collect_inputs(options))
    try:
        run_checkout(request, mirror_root=mirror_root, workspace=workspace)
    except CheckoutError as e:
        logger.error(pretty_print_checkout_error(e))
        sys.exit(1)


@click.command(name="plan")
@click.option("--repository", required=True, help="Repository name with owner.")
@click.option("--ref", default="", help="Branch, tag or qualified ref.")
@click.option("--commit", default="", help="Commit hash.")
@click.option(
    "--fetch-depth", type=int, default=1, show_default=True, help="Fetch depth."
)
@click.option(
    "--mirror-root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=MIRROR_ROOT_ENV,
    help="Root of the runner's git mirror cache.",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Write the plan to this file instead of standard output.",
)
def plan(
    repository: str,
    ref: str,
    commit: str,
    fetch_depth: int,
    mirror_root: Optional[Path],
    output: Optional[Path],
):
    """Show how a ref or commit would be checked out.

    The ref is resolved against the existing mirror only: nothing is fetched
    and nothing is checked out.
    """
    request = build_request(
        {
            "repository": repository,
            "ref": ref,
            "commit": commit,
            "fetch-depth": fetch_depth,
        }
    )
    try:
        root = check_mirror_root(mirror_root)
        mirror_dir = mirror_path(root, request.owner, request.repo)
        if not mirror_dir.exists():
            raise PreconditionError(
                f"No mirror of {request.full_name} at {mirror_dir}",
                hint="Run a checkout of the repository first to create it.",
            )
        checkout_plan = plan_checkout(CommandRunner(), request, mirror_dir)
    except CheckoutError as e:
        logger.error(pretty_print_checkout_error(e))
        sys.exit(1)

    document = {"mirror": str(mirror_dir), **checkout_plan.to_dict()}
    rendered = yaml.safe_dump(document, sort_keys=False)
    if output:
        output.write_text(rendered)
        logger.info(f"Plan written to {output}")
    else:
        click.echo(rendered, nl=False)


@click.command(name="mirror-path")
@click.option("--repository", required=True, help="Repository name with owner.")
@click.option(
    "--mirror-root",
    type=click.Path(file_okay=False, path_type=Path),
    envvar=MIRROR_ROOT_ENV,
    help="Root of the runner's git mirror cache.",
)
def mirror_path_command(repository: str, mirror_root: Optional[Path]):
    """Print the mirror directory a repository maps to."""
    request = build_request({"repository": repository})
    try:
        root = check_mirror_root(mirror_root)
    except CheckoutError as e:
        logger.error(pretty_print_checkout_error(e))
        sys.exit(1)
    click.echo(str(mirror_path(root, request.owner, request.repo)))
