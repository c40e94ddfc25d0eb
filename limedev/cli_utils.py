"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
import click
from functools import wraps
from typing import Generator
from .progress import get_progress
from .errors import ConfigParseError
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError, ConfigError, PartialSuccessError
)
from .format_utils import format_output, get_format_from_env, FORMATS
from .workspace import Workspace


def standard_command(streaming: bool = False):
    """
    Decorator that provides standard CLI behavior:
    - Progress reporting on stderr
    - Clean data output on stdout (JSONL unless --format says otherwise)
    - Automatic --quiet/-q handling to suppress data output
    - Consistent error handling and exit codes

    Args:
        streaming: If True, output records as they are produced.
                  If False, collect results and output at end.
    """
    def decorator(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            verbose = kwargs.get('verbose', False)
            quiet = kwargs.get('quiet', False)
            output_format = kwargs.get('format', None) or get_format_from_env('jsonl')

            progress = get_progress(enabled=verbose or None)
            kwargs['progress'] = progress

            try:
                result = func(*args, **kwargs)

                if quiet:
                    # In quiet mode, consume the generator but don't output
                    if isinstance(result, Generator):
                        for _ in result:
                            pass
                elif result is None:
                    # Command handles its own output
                    pass
                elif isinstance(result, Generator):
                    items = result if streaming else list(result)
                    for line in format_output(items, output_format):
                        print(line, flush=True)
                elif isinstance(result, (list, tuple)):
                    for line in format_output(iter(result), output_format):
                        print(line, flush=True)
                elif isinstance(result, dict):
                    for line in format_output(iter([result]), output_format):
                        print(line, flush=True)
                else:
                    print(result, flush=True)

                sys.exit(SUCCESS)

            except KeyboardInterrupt:
                progress.error("Interrupted by user")
                sys.exit(INTERRUPTED)
            except click.ClickException:
                # Click exceptions already have their exit code
                raise
            except CommandError as e:
                progress.error(str(e))
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__,
                        "exit_code": e.exit_code
                    }
                    error_obj.update(e.details())
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                sys.exit(e.exit_code)
            except Exception as e:
                progress.error(f"Command failed: {e}")
                if not quiet:
                    error_obj = {
                        "error": str(e),
                        "type": type(e).__name__
                    }
                    print(json.dumps(error_obj, ensure_ascii=False), flush=True)
                sys.exit(get_exit_code_for_exception(e))

        return wrapper
    return decorator


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Force progress output even when piped'),
    'quiet': click.option('-q', '--quiet', is_flag=True,
                          help='Suppress data output, show only progress'),
    'format': click.option('-f', '--format',
                           type=click.Choice(list(FORMATS)),
                           help='Output format (default: jsonl, or from LIME_FORMAT env)'),
    'table': click.option('--table', is_flag=True,
                          help='Display as a formatted table'),
    'config': click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False),
                           help='Configuration file (default: configs/versions.conf or LIME_CONFIG)'),
    'build_dir': click.option('-C', '--build-dir', type=click.Path(file_okay=False),
                              help='Workspace root (default: LIME_BUILD_DIR or current directory)'),
    'mode': click.option('-m', '--mode', default=None,
                         help='Override mode, e.g. "release" (default: from LIME_RELEASE_MODE/LIME_MODE)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'config')
        def my_command(verbose, config_path):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator


def raise_for_failures(summary, progress, what: str = "repositories"):
    """
    Print an itemized failure list and raise PartialSuccessError.

    Does nothing when the summary has no failures.
    """
    if summary is None or summary.success:
        return

    failures = summary.failures()
    progress.error(f"{len(failures)} {what} failed:")
    for name, problems in failures.items():
        for problem in problems:
            progress.error(f"  {name}: {problem}")

    raise PartialSuccessError(
        f"{summary.failed} of {summary.total} operations failed",
        succeeded=summary.total - summary.failed,
        failed=summary.failed,
        failures=failures,
    )


def open_workspace(build_dir=None, config_path=None, mode=None) -> Workspace:
    """Workspace.open for commands; configuration failures become ConfigError."""
    try:
        return Workspace.open(build_dir, config_path, mode)
    except ConfigParseError as e:
        raise ConfigError(e) from e
