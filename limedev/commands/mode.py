"""
Handles the 'mode' command: show the active mode and what it resolves to.
"""

import os
import click

from ..cli_utils import standard_command, add_common_options, open_workspace
from ..domain.repository import RELEASE_MODE
from ..render import console


def _mode_source(explicit: bool) -> str:
    if explicit:
        return 'option'
    if os.environ.get('LIME_MODE', '').strip():
        return 'LIME_MODE'
    if os.environ.get('LIME_RELEASE_MODE'):
        return 'LIME_RELEASE_MODE'
    return 'default'


@click.command(name='mode')
@click.option('--release', is_flag=True, help='Show the release resolution')
@click.option('--overridden', 'only_overridden', is_flag=True,
              help='Only list repositories the mode changes')
@add_common_options('build_dir', 'config', 'mode', 'table', 'verbose', 'quiet', 'format')
@standard_command()
def mode_handler(release, only_overridden, build_dir, config_path, mode, table, progress, **kwargs):
    """Show the active mode and the effective repository settings.

    \b
    The mode comes from --mode/--release, else LIME_MODE, else
    LIME_RELEASE_MODE=true (release), else default.

    Examples:

    \b
        limedev mode                         # Current mode
        LIME_RELEASE_MODE=true limedev mode  # What a release build uses
        limedev mode --release --overridden  # Only the release pins
    """
    explicit = release or bool(mode)
    ws = open_workspace(build_dir, config_path, RELEASE_MODE if release else mode)
    repos = [r for r in ws.resolved() if r.overridden or not only_overridden]

    if ws.mode not in ws.config.modes() and ws.mode != 'default':
        progress.warning(f"No [{ws.mode}_overrides] section in {ws.config.source}; using base definitions")

    if table:
        console.print(f"[bold]Mode:[/bold] {ws.mode} (from {_mode_source(explicit)})")
        for repo in repos:
            marker = "[yellow]*[/yellow]" if repo.overridden else " "
            console.print(f" {marker} [cyan]{repo.name}[/cyan] {repo.remote}/{repo.branch} {repo.url}")
        return None

    header = {
        'type': 'mode',
        'mode': ws.mode,
        'source': _mode_source(explicit),
        'available': ['default'] + ws.config.modes(),
    }
    return [header] + [repo.to_dict() for repo in repos]
