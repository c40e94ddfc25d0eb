import click
import json

from ..cli_utils import standard_command, add_common_options, open_workspace
from ..config import get_config_path
from ..exit_codes import NoReposFoundError


@click.group("config")
def config_cmd():
    """Inspect the workspace configuration."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
@click.option("--path", is_flag=True, help="Show the config file path being used")
@add_common_options('build_dir', 'config', 'verbose')
@standard_command()
def show_config(pretty, path, build_dir, config_path, progress, **kwargs):
    """Show the parsed configuration.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    """
    if path:
        print(json.dumps({"config_path": str(config_path or get_config_path(build_dir))}))
        return None

    ws = open_workspace(build_dir, config_path)
    if pretty:
        print(json.dumps(ws.config.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(json.dumps(ws.config.to_dict(), ensure_ascii=False))
    return None


@config_cmd.command("repo")
@click.argument("name")
@add_common_options('build_dir', 'config', 'verbose', 'quiet', 'format')
@standard_command()
def show_repo(name, build_dir, config_path, progress, **kwargs):
    """Show one repository: its base definition, overrides and resolution per mode."""
    ws = open_workspace(build_dir, config_path)
    base = ws.config.get_repository(name)
    if base is None:
        raise NoReposFoundError(f"Repository '{name}' is not declared in {ws.config.source}")

    overrides = {}
    resolved = {'default': ws.resolver.resolve(base.id).to_dict()}
    for mode in ws.config.modes():
        override = ws.config.get_override(base.id, mode)
        if override is not None:
            overrides[mode] = override.to_dict()
        resolved[mode] = ws.resolver.resolve(base.id, mode).to_dict()

    return {
        **base.to_dict(),
        'overrides': overrides,
        'resolved': resolved,
    }
