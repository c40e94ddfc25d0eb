"""
Handles the 'env' command: print or write the build environment.

The output is meant for the shell:

    eval "$(limedev env)"
"""

import json
import click

from ..cli_utils import standard_command, add_common_options, open_workspace
from ..domain.repository import RELEASE_MODE
from ..infra.file_store import write_atomic
from ..render import render_environment_table
from ..services.environment import format_shell_exports


@click.command(name='env')
@click.option('--release', is_flag=True, help='Export the release pins')
@click.option('-o', '--output', type=click.Path(dir_okay=False),
              help='Write the export lines to this file instead of stdout')
@click.option('--json', 'as_json', is_flag=True, help='Print a single JSON object')
@add_common_options('build_dir', 'config', 'mode', 'table', 'verbose', 'quiet')
@standard_command()
def env_handler(release, output, as_json, build_dir, config_path, mode, table, progress, quiet, **kwargs):
    """Export the variables the build and QEMU tooling read.

    \b
    Includes the workspace directories, LIME_RELEASE_MODE, version pins,
    build targets, QEMU and node settings, and REPO_<ID>_URL/BRANCH/
    REMOTE/DIR for every repository.

    Examples:

    \b
        eval "$(limedev env)"
        limedev env --release -o .lime-env
        limedev env --json | jq .LIME_REPOS_DIR
    """
    ws = open_workspace(build_dir, config_path, RELEASE_MODE if release else mode)
    env = ws.environment()
    progress(f"{len(env)} variables for mode {ws.mode}")

    if output:
        content = "\n".join(format_shell_exports(env)) + "\n"
        write_atomic(output, content)
        progress.success(f"Environment written to {output}")
        return None

    if quiet:
        return None
    if table:
        render_environment_table(env)
    elif as_json:
        print(json.dumps(env, ensure_ascii=False, sort_keys=True))
    else:
        for line in format_shell_exports(env):
            print(line)
    return None
