"""
Handles the 'status' command for displaying repository status.

Status only reads local state: nothing is fetched, so ahead/behind counts
are relative to the last fetch.
"""

import sys
import click

from ..cli_utils import standard_command, add_common_options, open_workspace
from ..domain.repository import RELEASE_MODE
from ..render import render_status_table
from ..services.sync_service import SyncService


@click.command(name='status')
@click.argument('names', nargs=-1)
@click.option('--release', is_flag=True, help='Compare against the release pins')
@click.option('--table/--no-table', default=None,
              help='Display as formatted table (auto-detected by default)')
@add_common_options('build_dir', 'config', 'mode', 'verbose', 'quiet', 'format')
@standard_command(streaming=True)
def status_handler(names, release, table, build_dir, config_path, mode, progress, **kwargs):
    """Show how each working directory compares to its pinned definition.

    NAMES: Repositories to show (default: all)

    \b
    The sync field is one of: absent, not_a_repository, unknown,
    missing_branch, up_to_date, ahead, behind, diverged.

    Examples:

    \b
        limedev status                   # Table on a terminal, JSONL when piped
        limedev status --release         # Against the release pins
        limedev status lime-app --no-table
    """
    if table is None:
        table = sys.stdout.isatty()

    ws = open_workspace(build_dir, config_path, RELEASE_MODE if release else mode)
    repos = ws.resolved(list(names))
    service = SyncService()

    progress(f"Checking {len(repos)} repositories (mode: {ws.mode})...")

    if table:
        render_status_table([service.status(repo, ws.repo_path(repo)) for repo in repos])
        return None

    return (service.status(repo, ws.repo_path(repo)) for repo in repos)
