"""
Upstream contribution workflow commands.

    limedev upstream setup    - remote, git aliases, exclusions, pre-commit hook
    limedev upstream aliases  - list the aliases with their expanded commands
"""

import click

from ..catalog import load_catalog
from ..cli_utils import standard_command, add_common_options, raise_for_failures
from ..config import get_build_dir
from ..exit_codes import NoReposFoundError
from ..render import render_aliases_table, render_upstream_table
from ..services.environment import EnvironmentPaths
from ..services.upstream_service import ALL_STEPS, UpstreamService


def _service(build_dir, catalog_path):
    paths = EnvironmentPaths.from_build_dir(get_build_dir(build_dir))
    return paths, UpstreamService(paths.tools_dir, catalog=load_catalog(catalog_path))


catalog_option = click.option('--catalog', 'catalog_path', type=click.Path(dir_okay=False),
                              help='Extra upstream catalog (default: LIME_UPSTREAM_CATALOG)')


@click.group(name='upstream')
def upstream_cmd():
    """Prepare repositories for upstream contribution."""
    pass


@upstream_cmd.command(name='setup')
@click.argument('names', nargs=-1)
@click.option('-s', '--step', 'steps', multiple=True, type=click.Choice(ALL_STEPS),
              help='Run only these steps (default: all)')
@catalog_option
@add_common_options('build_dir', 'table', 'verbose', 'quiet', 'format')
@standard_command(streaming=True)
def upstream_setup(names, steps, catalog_path, build_dir, table, progress, **kwargs):
    """Add the upstream remote, git aliases, exclusion rules and hook.

    NAMES: Repositories to set up (default: every catalog repository
    present in the workspace)

    Running it again is safe: steps whose end state already holds report
    "unchanged".

    Examples:

    \b
        limedev upstream setup
        limedev upstream setup lime-app -s aliases -s hook
    """
    paths, service = _service(build_dir, catalog_path)
    unknown = [n for n in names if service.entry(n) is None]
    if unknown:
        raise NoReposFoundError(f"Not in the upstream catalog: {', '.join(unknown)}")

    steps = tuple(steps) or ALL_STEPS
    if table:
        for message in service.provision_repos(paths.repos_dir, list(names), steps):
            progress(message)
        render_upstream_table(service.last_result)
        raise_for_failures(service.last_result, progress)
        return None

    return _setup_records(service, paths, list(names), steps, progress)


def _setup_records(service, paths, names, steps, progress):
    for message in service.provision_repos(paths.repos_dir, names, steps):
        progress(message)
    result = service.last_result
    for detail in result.details:
        yield detail.to_dict()
    yield result.to_dict()
    raise_for_failures(result, progress)


@upstream_cmd.command(name='aliases')
@click.argument('names', nargs=-1)
@catalog_option
@add_common_options('build_dir', 'table', 'verbose', 'quiet', 'format')
@standard_command()
def upstream_aliases(names, catalog_path, build_dir, table, progress, **kwargs):
    """List the upstream git aliases with their expanded commands.

    NAMES: Repositories (default: all catalog repositories)
    """
    _, service = _service(build_dir, catalog_path)
    selected = list(names) or sorted(service.catalog)
    aliases = []
    for name in selected:
        described = service.describe_aliases(name)
        if not described:
            progress.warning(f"{name}: not in the upstream catalog")
        aliases.extend(described)

    if table:
        render_aliases_table(aliases)
        return None
    return aliases
