"""Tests for the upstream catalog."""

import pytest

from limedev.catalog import load_catalog, parse_catalog
from limedev.errors import ConfigParseError


class TestDefaultCatalog:
    """Tests for the catalog shipped with the package."""

    def test_entries(self):
        catalog = load_catalog(environ={})
        assert sorted(catalog) == ["librerouteros", "lime-app", "lime-packages"]
        assert catalog["lime-app"].url == "https://github.com/libremesh/lime-app.git"
        assert catalog["librerouteros"].branch == "main"

    def test_exclusions_have_sections(self):
        entry = load_catalog(environ={})["lime-app"]
        assert entry.exclusions
        assert "node_modules/" in entry.patterns
        assert all(section.title for section in entry.exclusions)


class TestParseCatalog:
    """Tests for parse_catalog."""

    def test_key_normalized_to_directory_name(self):
        catalog = parse_catalog({"kconfig_utils": {"url": "u", "branch": "master"}})
        assert list(catalog) == ["kconfig-utils"]
        assert catalog["kconfig-utils"].exclusions == ()

    def test_loose_patterns(self):
        catalog = parse_catalog({"x": {"url": "u", "branch": "b", "exclusions": ["a/", "b/"]}})
        assert catalog["x"].patterns == ["a/", "b/"]

    def test_missing_branch(self):
        with pytest.raises(ConfigParseError, match="needs url and branch"):
            parse_catalog({"x": {"url": "u"}})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigParseError):
            parse_catalog(["x"])

    def test_empty(self):
        assert parse_catalog(None) == {}


class TestUserCatalog:
    """Tests for extending the catalog with a user file."""

    def test_user_file_adds_and_replaces(self, tmp_path):
        extra = tmp_path / "upstream.yaml"
        extra.write_text(
            "lime-app:\n"
            "  url: https://example.org/fork/lime-app.git\n"
            "  branch: develop\n"
            "kconfig-utils:\n"
            "  url: https://github.com/gustavoz/kconfig-utils.git\n"
            "  branch: master\n"
        )
        catalog = load_catalog(environ={"LIME_UPSTREAM_CATALOG": str(extra)})
        assert catalog["lime-app"].branch == "develop"
        assert "kconfig-utils" in catalog
        assert "lime-packages" in catalog

    def test_invalid_yaml(self, tmp_path):
        extra = tmp_path / "bad.yaml"
        extra.write_text("lime-app: [unclosed\n")
        with pytest.raises(ConfigParseError, match="invalid YAML"):
            load_catalog(extra, environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigParseError, match="not found"):
            load_catalog(tmp_path / "absent.yaml", environ={})
