"""
Handles the 'setup' command: clone and update the workspace repositories.

Every repository is processed even when others fail. Per-repository outcomes
stream as JSONL, a summary record follows, and the command exits with
PARTIAL_SUCCESS if anything failed.
"""

import click

from ..catalog import load_catalog
from ..cli_utils import standard_command, add_common_options, open_workspace, raise_for_failures
from ..domain.repository import RELEASE_MODE
from ..exit_codes import NoReposFoundError
from ..progress import LogLevel
from ..render import render_sync_table, render_upstream_table
from ..services.sync_service import SyncOptions, SyncService
from ..services.upstream_service import UpstreamService


@click.command(name='setup')
@click.argument('names', nargs=-1)
@click.option('--release', is_flag=True, help='Use the [release_overrides] section')
@click.option('-j', '--parallel', type=click.IntRange(min=1), default=1,
              help='Number of repositories to process at once')
@click.option('--timeout', type=float, default=None,
              help='Abort a clone or fetch after this many seconds')
@click.option('--lock-timeout', type=float, default=0.0,
              help='Seconds to wait for a repository that is busy')
@click.option('--upstream/--no-upstream', default=False,
              help='Also provision the upstream contribution workflow')
@add_common_options('build_dir', 'config', 'mode', 'table', 'verbose', 'quiet', 'format')
@standard_command(streaming=True)
def setup_handler(names, release, parallel, timeout, lock_timeout, upstream, build_dir,
                  config_path, mode, table, progress, **kwargs):
    """Clone missing repositories and bring existing ones up to date.

    NAMES: Repositories to process (default: all in [repositories])

    \b
    Existing checkouts are only fast-forwarded; local work is never
    discarded. A branch with unpushed commits is reported as "ahead" and
    does not count as a failure. A branch that has diverged from its
    remote is reported as a failure and left alone. Host RAM and disk are
    compared with [system_requirements]; a shortfall only warns.

    Examples:

    \b
        limedev setup                         # All repositories
        limedev setup lime-app lime-packages  # Just these two
        limedev setup --release -j 4          # Release pins, 4 at a time
        limedev setup --upstream --table      # Also set up upstream workflow
    """
    ws = open_workspace(build_dir, config_path, RELEASE_MODE if release else mode)
    repos = ws.resolved(list(names))
    if not repos:
        raise NoReposFoundError(f"No repositories declared in {ws.config.source}")

    progress(f"Mode: {ws.mode}, {len(repos)} repositories in {ws.paths.repos_dir}")
    ws.create_directories()
    for check in ws.check_requirements():
        if not check.ok:
            progress(check.message, force=True, level=LogLevel.WARNING)

    service = SyncService()
    options = SyncOptions(parallel=parallel, timeout=timeout, lock_timeout=lock_timeout)

    upstream_service = None
    upstream_names = []
    if upstream:
        upstream_service = UpstreamService(ws.paths.tools_dir, catalog=load_catalog())
        upstream_names = [r.name for r in repos if upstream_service.entry(r.name)]

    if table:
        for message in service.sync_repos(repos, ws.paths.repos_dir, options):
            progress(message)
        render_sync_table(service.last_result)
        if upstream_names:
            for message in upstream_service.provision_repos(ws.paths.repos_dir, upstream_names):
                progress(message)
            render_upstream_table(upstream_service.last_result)
            raise_for_failures(upstream_service.last_result, progress)
        raise_for_failures(service.last_result, progress)
        return None

    return _setup_records(service, repos, ws, options, upstream_service, upstream_names, progress)


def _setup_records(service, repos, ws, options, upstream_service, upstream_names, progress):
    """Run the sync, then yield one record per outcome and a summary."""
    for message in service.sync_repos(repos, ws.paths.repos_dir, options):
        progress(message)

    result = service.last_result
    for detail in result.details:
        yield detail.to_dict()
    yield result.to_dict()

    upstream_result = None
    if upstream_names:
        for message in upstream_service.provision_repos(ws.paths.repos_dir, upstream_names):
            progress(message)
        upstream_result = upstream_service.last_result
        for detail in upstream_result.details:
            yield detail.to_dict()
        yield upstream_result.to_dict()

    if result.success:
        progress.success(f"{result.total} repositories in sync")
    raise_for_failures(result, progress)
    raise_for_failures(upstream_result, progress)
