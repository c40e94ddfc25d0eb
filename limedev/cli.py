#!/usr/bin/env python3

import click

from limedev.config import set_log_level
from limedev.commands.setup import setup_handler
from limedev.commands.status import status_handler
from limedev.commands.mode import mode_handler
from limedev.commands.env import env_handler
from limedev.commands.check import check_handler

# Command groups
from limedev.commands.upstream import upstream_cmd
from limedev.commands.config import config_cmd


@click.group()
@click.version_option(package_name='limedev')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level (default: LIME_LOG_LEVEL or INFO)')
def cli(log_level):
    """limedev - LibreMesh development workspace manager.

    Keeps the lime-app, lime-packages, librerouteros and OpenWrt checkouts
    pinned to configs/versions.conf, exports the build environment, and
    prepares repositories for upstream contribution.
    """
    if log_level:
        set_log_level(log_level)


# Core commands (flat, top-level)
cli.add_command(setup_handler)
cli.add_command(status_handler)
cli.add_command(mode_handler)
cli.add_command(env_handler)
cli.add_command(check_handler)

# Command groups
cli.add_command(upstream_cmd)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
