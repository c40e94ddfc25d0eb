#!/usr/bin/env python3

import os
from pathlib import Path
from typing import Mapping, Optional, Union

import logging
import sys

from .config_store import load_config_file
from .domain.config import ConfigModel

# Configure logging
logging.basicConfig(
    level=os.environ.get('LIME_LOG_LEVEL', 'INFO').upper(),
    format="%(levelname)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr)  # Default to stderr
    ]
)
logger = logging.getLogger("limedev")

CONFIG_RELATIVE_PATH = Path('configs') / 'versions.conf'


def get_build_dir(build_dir: Optional[Union[str, Path]] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get the workspace root.

    Checks in order:
    1. Explicit argument
    2. LIME_BUILD_DIR environment variable
    3. Current working directory
    """
    environ = os.environ if environ is None else environ
    if build_dir:
        return Path(build_dir).expanduser().resolve()
    if environ.get('LIME_BUILD_DIR'):
        return Path(environ['LIME_BUILD_DIR']).expanduser().resolve()
    return Path.cwd()


def get_config_path(build_dir: Optional[Union[str, Path]] = None,
                    environ: Optional[Mapping[str, str]] = None) -> Path:
    """Get the path to versions.conf.

    LIME_CONFIG wins when set; otherwise configs/versions.conf under the
    build directory.
    """
    environ = os.environ if environ is None else environ
    if environ.get('LIME_CONFIG'):
        return Path(environ['LIME_CONFIG']).expanduser()
    return get_build_dir(build_dir, environ) / CONFIG_RELATIVE_PATH


def load_config(path: Optional[Union[str, Path]] = None,
                build_dir: Optional[Union[str, Path]] = None) -> ConfigModel:
    """Load the workspace configuration.

    Raises:
        ConfigParseError: If the file is missing or malformed
    """
    config_path = Path(path).expanduser() if path else get_config_path(build_dir)
    logger.debug(f"Using configuration: {config_path}")
    return load_config_file(config_path)


def set_log_level(level: Union[int, str]) -> None:
    """Change the level of the limedev logger hierarchy."""
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)
