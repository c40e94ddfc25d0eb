"""
In-memory configuration model for limedev.

ConfigModel is produced by the config store and is read-only afterwards.
Every query returns None for an undefined key; absence is an expected
condition that callers handle themselves.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from .repository import (
    RepositoryDefinition,
    RepositoryOverride,
    BuildTarget,
    RELEASE_MODE,
    normalize_id,
)


@dataclass(frozen=True)
class ConfigModel:
    """Parsed contents of a versions.conf file."""
    source: str = "<config>"
    repositories: Dict[str, RepositoryDefinition] = field(default_factory=dict)
    overrides: Dict[str, Dict[str, RepositoryOverride]] = field(default_factory=dict)
    sections: Dict[str, Dict[str, str]] = field(default_factory=dict)
    raw_sections: Dict[str, List[str]] = field(default_factory=dict)

    def repository_ids(self) -> List[str]:
        """Declared repository ids, in file order."""
        return list(self.repositories)

    def modes(self) -> List[str]:
        """Names of modes that have an override section."""
        return list(self.overrides)

    def get_repository(self, repo_id: str) -> Optional[RepositoryDefinition]:
        return self.repositories.get(normalize_id(repo_id))

    def get_override(self, repo_id: str, mode: str = RELEASE_MODE) -> Optional[RepositoryOverride]:
        return self.overrides.get(mode, {}).get(normalize_id(repo_id))

    def get_value(self, section: str, key: str) -> Optional[str]:
        return self.sections.get(section, {}).get(key)

    def section_keys(self, section: str) -> List[str]:
        return list(self.sections.get(section, {}))

    def get_section(self, section: str) -> Dict[str, str]:
        return dict(self.sections.get(section, {}))

    def get_build_target(self, name: str) -> Optional[BuildTarget]:
        """Look up a target by short name (``default``) or key (``default_target``)."""
        targets = self.sections.get('build_targets', {})
        key = name if name.endswith('_target') else f"{name}_target"
        value = targets.get(key, targets.get(name))
        if value is None:
            return None
        return BuildTarget(name=key[:-len('_target')], target=value)

    def build_targets(self) -> List[BuildTarget]:
        result = []
        for key in self.section_keys('build_targets'):
            target = self.get_build_target(key)
            if target is not None:
                result.append(target)
        return result

    def get_version(self, name: str) -> Optional[str]:
        """Look up a version by short name (``openwrt``) or key (``openwrt_version``)."""
        versions = self.sections.get('firmware_versions', {})
        if name in versions:
            return versions[name]
        return versions.get(f"{name}_version")

    def versions(self) -> Dict[str, str]:
        return self.get_section('firmware_versions')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'repositories': [r.to_dict() for r in self.repositories.values()],
            'overrides': {
                mode: [o.to_dict() for o in entries.values()]
                for mode, entries in self.overrides.items()
            },
            'sections': {name: dict(values) for name, values in self.sections.items()},
        }
