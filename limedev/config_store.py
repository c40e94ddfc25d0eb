"""
Parser for the section-based versions.conf format.

The format is INI-like::

    # comment
    [repositories]
    lime_app=https://github.com/libremesh/lime-app.git|master|origin

    [release_overrides]
    lime_app_release=https://github.com/libremesh/lime-app.git|v2024.1|origin

Repository cells are ``url|branch|remote``. In ``[repositories]`` url and
branch are required and an empty remote means ``origin``; in override
sections any field may be left empty to keep the base value.

Any ``[<mode>_overrides]`` section defines overrides for mode ``<mode>``.
Sections this module does not recognise are kept as-is so newer files still
load with older tooling.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .domain.config import ConfigModel
from .domain.repository import (
    RepositoryDefinition,
    RepositoryOverride,
    DEFAULT_REMOTE,
    normalize_id,
)
from .errors import ConfigParseError, MalformedRepositoryEntry

logger = logging.getLogger(__name__)

REPOSITORIES_SECTION = 'repositories'
OVERRIDES_SUFFIX = '_overrides'

KNOWN_SECTIONS = frozenset({
    REPOSITORIES_SECTION,
    'release_overrides',
    'build_targets',
    'firmware_versions',
    'system_requirements',
    'qemu_config',
    'node_config',
    'build_flags',
})

SECTION_RE = re.compile(r'^\[([^\[\]]+)\]$')
TRAILING_COMMENT_RE = re.compile(r'\s+#.*$')
CELL_SEPARATOR = '|'


def _is_recognized(section: str) -> bool:
    return section in KNOWN_SECTIONS or section.endswith(OVERRIDES_SUFFIX)


def _mode_for_section(section: str) -> Optional[str]:
    if section.endswith(OVERRIDES_SUFFIX) and len(section) > len(OVERRIDES_SUFFIX):
        return section[:-len(OVERRIDES_SUFFIX)]
    return None


def _split_cell(key: str, value: str, source: str, line: int, section: str) -> Tuple[str, str, str]:
    parts = [part.strip() for part in value.split(CELL_SEPARATOR)]
    if len(parts) < 3:
        raise MalformedRepositoryEntry(key, value, source=source, line=line, section=section)
    if len(parts) > 3:
        raise MalformedRepositoryEntry(
            key, value, source=source, line=line, section=section,
            reason="too many fields, expected url|branch|remote",
        )
    return parts[0], parts[1], parts[2]


def _parse_repository(key: str, value: str, source: str, line: int) -> RepositoryDefinition:
    url, branch, remote = _split_cell(key, value, source, line, REPOSITORIES_SECTION)
    if not url:
        raise MalformedRepositoryEntry(key, value, source=source, line=line,
                                       section=REPOSITORIES_SECTION, reason="url is empty")
    if not branch:
        raise MalformedRepositoryEntry(key, value, source=source, line=line,
                                       section=REPOSITORIES_SECTION, reason="branch is empty")
    return RepositoryDefinition(
        id=normalize_id(key),
        url=url,
        branch=branch,
        remote=remote or DEFAULT_REMOTE,
    )


def _parse_override(key: str, value: str, mode: str, section: str,
                    source: str, line: int) -> RepositoryOverride:
    url, branch, remote = _split_cell(key, value, source, line, section)
    repo_id = normalize_id(key)
    suffix = f"_{mode}"
    if repo_id.endswith(suffix) and len(repo_id) > len(suffix):
        repo_id = repo_id[:-len(suffix)]
    return RepositoryOverride(
        id=repo_id,
        url=url or None,
        branch=branch or None,
        remote=remote or None,
    )


def _strip_comment(text: str) -> str:
    return TRAILING_COMMENT_RE.sub('', text).strip()


def parse_config(text: str, source: str = "<config>") -> ConfigModel:
    """
    Parse configuration text into a ConfigModel.

    Args:
        text: Contents of a versions.conf file
        source: Name used in error messages

    Returns:
        The parsed model

    Raises:
        ConfigParseError: On a malformed section header or line
        MalformedRepositoryEntry: On a repository cell with fewer than three fields
    """
    repositories: Dict[str, RepositoryDefinition] = {}
    overrides: Dict[str, Dict[str, RepositoryOverride]] = {}
    sections: Dict[str, Dict[str, str]] = {}
    raw_sections: Dict[str, List[str]] = {}

    section: Optional[str] = None

    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith('#'):
            continue

        if stripped.startswith('['):
            match = SECTION_RE.match(_strip_comment(stripped))
            if not match:
                raise ConfigParseError(f"malformed section header: {stripped!r}",
                                       source=source, line=lineno)
            section = match.group(1).strip()
            sections.setdefault(section, {})
            raw_sections.setdefault(section, [])
            mode = _mode_for_section(section)
            if mode is not None:
                overrides.setdefault(mode, {})
            continue

        if section is None:
            raise ConfigParseError(f"content outside of any section: {stripped!r}",
                                   source=source, line=lineno)

        raw_sections[section].append(raw.rstrip('\n'))
        recognized = _is_recognized(section)

        if '=' not in stripped:
            if recognized:
                raise ConfigParseError(f"expected key=value, got {stripped!r}",
                                       source=source, line=lineno, section=section)
            continue

        key, _, value = stripped.partition('=')
        key = key.strip()
        value = _strip_comment(value)
        if not key:
            if recognized:
                raise ConfigParseError(f"empty key in {stripped!r}",
                                       source=source, line=lineno, section=section)
            continue

        if key in sections[section]:
            logger.warning(f"{source}:{lineno}: duplicate key '{key}' in [{section}], last value wins")
        sections[section][key] = value

        if section == REPOSITORIES_SECTION:
            definition = _parse_repository(key, value, source, lineno)
            repositories[definition.id] = definition
        else:
            mode = _mode_for_section(section)
            if mode is not None:
                override = _parse_override(key, value, mode, section, source, lineno)
                overrides[mode][override.id] = override

    for section_name in sections:
        if not _is_recognized(section_name):
            logger.debug(f"{source}: keeping unrecognised section [{section_name}]")

    return ConfigModel(
        source=source,
        repositories=repositories,
        overrides=overrides,
        sections=sections,
        raw_sections=raw_sections,
    )


def load_config_file(path: Union[str, Path]) -> ConfigModel:
    """
    Load and parse a configuration file.

    Raises:
        ConfigParseError: If the file is missing, unreadable or malformed
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise ConfigParseError("configuration file not found", source=str(path))
    except OSError as e:
        raise ConfigParseError(f"cannot read configuration file: {e}", source=str(path))

    model = parse_config(text, source=str(path))
    logger.debug(f"Loaded {len(model.repositories)} repositories from {path}")
    return model
