"""mirror-checkout CLI"""

import click

from mirrorcheckout import __version__
from mirrorcheckout.cli.checkout import mirror_path_command, plan, run

from .debug import add_debug_option


@click.group()
@click.version_option(__version__, prog_name="mirror-checkout")
@click.pass_context
def cli(ctx):
    """
    Mirror-accelerated git checkouts for CI runners.
    """
    ctx.ensure_object(dict)


# Add subcommands to the CLI
cli.add_command(add_debug_option(run))
cli.add_command(add_debug_option(plan))
cli.add_command(mirror_path_command)

add_debug_option(cli)

if __name__ == "__main__":
    cli(obj={})
