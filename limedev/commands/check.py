"""
Handles the 'check' command: compare the host with [system_requirements].
"""

import click

from ..cli_utils import standard_command, add_common_options, open_workspace
from ..render import render_requirements_table


@click.command(name='check')
@add_common_options('build_dir', 'config', 'table', 'verbose', 'quiet', 'format')
@standard_command()
def check_handler(build_dir, config_path, table, progress, **kwargs):
    """Check RAM and free disk space against the configured minimums.

    \b
    A shortfall is reported with status "fail" but never changes the exit
    code; builds may still succeed on a smaller machine.

    Examples:

    \b
        limedev check           # One JSON record per requirement
        limedev check --table   # As a table
    """
    ws = open_workspace(build_dir, config_path)
    checks = [check.to_dict() for check in ws.check_requirements()]
    for check in checks:
        if check['status'] != 'pass':
            progress.warning(check['message'])

    if table:
        render_requirements_table(checks)
        return None
    return checks
