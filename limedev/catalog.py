"""
Upstream catalog for limedev.

Which public project each working directory contributes to, the main
branch there, and the exclusion patterns for content that stays local.
The catalog is data: the defaults ship in ``data/upstream.yaml`` and a
user file (``LIME_UPSTREAM_CATALOG``) can add or replace entries, so a new
repository needs no code change.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

import yaml

from .domain.repository import directory_name
from .errors import ConfigParseError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / 'data' / 'upstream.yaml'


@dataclass(frozen=True)
class ExclusionSection:
    """A titled group of exclusion patterns."""
    title: str
    patterns: Tuple[str, ...]


@dataclass(frozen=True)
class UpstreamEntry:
    """Upstream project for one working directory."""
    name: str
    url: str
    branch: str
    exclusions: Tuple[ExclusionSection, ...] = ()

    @property
    def patterns(self) -> List[str]:
        """All exclusion patterns, in catalog order."""
        return [p for section in self.exclusions for p in section.patterns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'url': self.url,
            'branch': self.branch,
            'exclusions': self.patterns,
        }


def _parse_exclusions(name: str, raw: Any, source: str) -> Tuple[ExclusionSection, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigParseError(f"exclusions for '{name}' must be a list", source=source)

    sections: List[ExclusionSection] = []
    loose: List[str] = []
    for item in raw:
        if isinstance(item, str):
            loose.append(item)
        elif isinstance(item, dict) and isinstance(item.get('patterns'), list):
            sections.append(ExclusionSection(
                title=str(item.get('section', 'Exclusions')),
                patterns=tuple(str(p) for p in item['patterns']),
            ))
        else:
            raise ConfigParseError(f"invalid exclusion entry for '{name}': {item!r}", source=source)

    if loose:
        sections.insert(0, ExclusionSection(title='Exclusions', patterns=tuple(loose)))
    return tuple(sections)


def parse_catalog(data: Any, source: str = "<catalog>") -> Dict[str, UpstreamEntry]:
    """Build catalog entries from a parsed YAML mapping."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError("upstream catalog must be a mapping", source=source)

    entries: Dict[str, UpstreamEntry] = {}
    for key, value in data.items():
        name = directory_name(str(key))
        if not isinstance(value, dict) or not value.get('url') or not value.get('branch'):
            raise ConfigParseError(f"catalog entry '{key}' needs url and branch", source=source)
        entries[name] = UpstreamEntry(
            name=name,
            url=str(value['url']),
            branch=str(value['branch']),
            exclusions=_parse_exclusions(name, value.get('exclusions'), source),
        )
    return entries


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigParseError("upstream catalog not found", source=str(path))
    except yaml.YAMLError as e:
        raise ConfigParseError(f"invalid YAML: {e}", source=str(path))


def load_catalog(path: Optional[Union[str, Path]] = None,
                 environ: Optional[Mapping[str, str]] = None) -> Dict[str, UpstreamEntry]:
    """
    Load the upstream catalog.

    Args:
        path: Extra catalog file; defaults to LIME_UPSTREAM_CATALOG if set

    Returns:
        Entries keyed by working directory name; user entries replace defaults
    """
    environ = os.environ if environ is None else environ
    catalog = parse_catalog(_read_yaml(DEFAULT_CATALOG_PATH), source=str(DEFAULT_CATALOG_PATH))

    extra = path or environ.get('LIME_UPSTREAM_CATALOG')
    if extra:
        extra_path = Path(extra).expanduser()
        user_entries = parse_catalog(_read_yaml(extra_path), source=str(extra_path))
        logger.debug(f"Loaded {len(user_entries)} upstream entries from {extra_path}")
        catalog.update(user_entries)

    return catalog
